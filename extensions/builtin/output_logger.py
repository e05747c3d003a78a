"""Output logger extension: logs all agent activity to JSON files."""

import json
import os
from datetime import datetime, timezone

from agent.messages import message_to_dict
from extensions.base_extension import Extension

PREVIEW_CHARS = 500


class OutputLoggerExtension(Extension):
    name = "output_logger"
    enabled = True

    def _log_path(self, agent) -> str:
        log_dir = self.config.log_dir
        os.makedirs(log_dir, exist_ok=True)
        return os.path.join(log_dir, f"session_{agent.session_id}.jsonl")

    def _write_entry(self, agent, event: str, data: dict):
        path = self._log_path(agent)
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "adapter": agent.adapter_name,
            "event": event,
            **data,
        }
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")

    async def on_loop_start(self, agent, seed, **kwargs):
        self._write_entry(agent, "loop_start", {"seed": message_to_dict(seed)})

    async def on_after_adapter_call(self, agent, messages, **kwargs):
        self._write_entry(agent, "adapter_turn", {
            "messages": [message_to_dict(m) for m in messages],
        })

    async def on_tool_execute_after(self, agent, tool_call, result, **kwargs):
        self._write_entry(agent, "tool_result", {
            "tool": tool_call.tool_name,
            "call_id": tool_call.call_id,
            "args_text": tool_call.args_text,
            "result_preview": result.content[:PREVIEW_CHARS],
            "is_error": result.is_error,
        })

    async def on_loop_end(self, agent, messages, **kwargs):
        last = messages[-1] if messages else None
        self._write_entry(agent, "loop_end", {
            "message_count": len(messages),
            "final_preview": getattr(last, "content", "")[:PREVIEW_CHARS],
        })
