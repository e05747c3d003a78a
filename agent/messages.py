"""Normalized, provider-agnostic conversation messages."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class SystemMessage:
    """Instruction text for the model."""
    content: str
    role: ClassVar[str] = "system"


@dataclass(frozen=True)
class UserMessage:
    """Human input."""
    content: str
    role: ClassVar[str] = "user"


@dataclass(frozen=True)
class AssistantMessage:
    """Natural-language output produced by the model."""
    content: str
    role: ClassVar[str] = "assistant"


@dataclass(frozen=True)
class ToolCallMessage:
    """A model request to invoke a named tool.

    ``args_text`` is the serialized argument payload exactly as the model
    produced it; its structure is defined by the tool, not the loop.
    """
    tool_name: str
    call_id: str
    args_text: str = ""
    role: ClassVar[str] = "tool_call"


@dataclass(frozen=True)
class ToolResultMessage:
    """Outcome of executing a ToolCallMessage, correlated by ``call_id``."""
    call_id: str
    content: str
    is_error: bool = False
    role: ClassVar[str] = "tool_result"


Message = Union[
    SystemMessage,
    UserMessage,
    AssistantMessage,
    ToolCallMessage,
    ToolResultMessage,
]

Context = list[Message]


# ── Tool argument payloads ───────────────────────────────────────────


@dataclass(frozen=True)
class ParsedArguments:
    """Argument text that parsed as JSON."""
    value: Any


@dataclass(frozen=True)
class RawArguments:
    """Argument text that could not be parsed."""
    text: str
    error: str


ToolArguments = Union[ParsedArguments, RawArguments]


def parse_tool_arguments(args_text: str | None) -> ToolArguments:
    """Parse a tool call payload. Empty text is an empty object."""
    if args_text is None or not args_text.strip():
        return ParsedArguments({})
    try:
        return ParsedArguments(json.loads(args_text))
    except json.JSONDecodeError as e:
        return RawArguments(text=args_text, error=str(e))


# ── Plain-dict helpers (web surface, session logs) ───────────────────


def message_to_dict(message: Message) -> dict[str, Any]:
    """Serialize a message to a JSON-friendly dict tagged with its role."""
    if isinstance(message, ToolCallMessage):
        return {
            "role": message.role,
            "tool_name": message.tool_name,
            "call_id": message.call_id,
            "args_text": message.args_text,
        }
    if isinstance(message, ToolResultMessage):
        return {
            "role": message.role,
            "call_id": message.call_id,
            "content": message.content,
            "is_error": message.is_error,
        }
    return {"role": message.role, "content": message.content}

