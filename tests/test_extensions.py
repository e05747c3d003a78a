import json
import tempfile
import unittest
from pathlib import Path

from agent.config import AgentConfig, ExtensionsConfig
from agent.messages import AssistantMessage, UserMessage
from extensions.base_extension import Extension
from extensions.builtin.output_logger import OutputLoggerExtension
from extensions.extension_manager import ExtensionManager
from tools.base_tool import FunctionTool

from fakes import ScriptedAdapter, scripted_agent, tool_call


class RecordingExtension(Extension):
    name = "recording"

    def __init__(self, config):
        super().__init__(config)
        self.events = []

    async def on_loop_start(self, agent, seed, **kwargs):
        self.events.append(("loop_start", seed))

    async def on_before_adapter_call(self, agent, context, **kwargs):
        self.events.append(("before_adapter_call", len(context)))

    async def on_after_adapter_call(self, agent, messages, **kwargs):
        self.events.append(("after_adapter_call", len(messages)))

    async def on_tool_execute_before(self, agent, tool_call, **kwargs):
        self.events.append(("tool_execute_before", tool_call.call_id))

    async def on_tool_execute_after(self, agent, tool_call, result, **kwargs):
        self.events.append(("tool_execute_after", result.content))

    async def on_loop_end(self, agent, messages, **kwargs):
        self.events.append(("loop_end", len(messages)))


class BrokenExtension(Extension):
    name = "broken"

    async def on_loop_start(self, agent, seed, **kwargs):
        raise RuntimeError("hook failed")


class TestExtensionManager(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config = AgentConfig(log_dir=str(Path(self._tmp.name) / "logs"))

    def tearDown(self):
        self._tmp.cleanup()

    async def test_hooks_fire_in_loop_order(self):
        manager = ExtensionManager(self.config)
        recorder = RecordingExtension(self.config)
        manager.register(recorder)
        adapter = ScriptedAdapter([tool_call("one", "c1")], [AssistantMessage("done")])
        agent = scripted_agent(adapter, extension_manager=manager)
        agent.register_tool(FunctionTool("one", "", lambda args: 1))

        await agent.run(UserMessage("go"))

        self.assertEqual(recorder.events, [
            ("loop_start", UserMessage("go")),
            ("before_adapter_call", 1),
            ("after_adapter_call", 1),
            ("tool_execute_before", "c1"),
            ("tool_execute_after", "1"),
            ("before_adapter_call", 3),
            ("after_adapter_call", 1),
            ("loop_end", 3),
        ])

    async def test_failing_hook_does_not_stop_loop(self):
        manager = ExtensionManager(self.config)
        manager.register(BrokenExtension(self.config))
        recorder = RecordingExtension(self.config)
        manager.register(recorder)
        agent = scripted_agent(ScriptedAdapter([AssistantMessage("ok")]), extension_manager=manager)

        with self.assertLogs("extensions.extension_manager", level="WARNING"):
            result = await agent.run(UserMessage("go"))

        self.assertEqual(result, [AssistantMessage("ok")])
        self.assertEqual(recorder.events[0], ("loop_start", UserMessage("go")))

    def test_discover_honors_enabled_map(self):
        manager = ExtensionManager(self.config)
        manager.discover_extensions()
        self.assertIn("output_logger", [e.name for e in manager.extensions])

        config = AgentConfig(
            log_dir=self.config.log_dir,
            extensions=ExtensionsConfig(enabled_map={"output_logger": False}),
        )
        manager = ExtensionManager(config)
        manager.discover_extensions()
        self.assertNotIn("output_logger", [e.name for e in manager.extensions])

    async def test_output_logger_writes_session_log(self):
        manager = ExtensionManager(self.config)
        manager.register(OutputLoggerExtension(self.config))
        adapter = ScriptedAdapter([tool_call("one", "c1")], [AssistantMessage("done")])
        agent = scripted_agent(adapter, extension_manager=manager, session_id="abc")
        agent.register_tool(FunctionTool("one", "", lambda args: 1))

        await agent.run(UserMessage("go"))

        path = Path(self.config.log_dir) / "session_abc.jsonl"
        entries = [json.loads(line) for line in path.read_text().splitlines()]
        self.assertEqual(
            [e["event"] for e in entries],
            ["loop_start", "adapter_turn", "tool_result", "adapter_turn", "loop_end"],
        )
        self.assertEqual(entries[0]["seed"], {"role": "user", "content": "go"})
        self.assertEqual(entries[2]["result_preview"], "1")
        self.assertEqual(entries[-1]["final_preview"], "done")
