"""Adapter lookup by name."""

from __future__ import annotations

from adapters.base import Adapter
from adapters.ollama import ollama_adapter
from adapters.openai import openai_adapter
from adapters.openrouter import openrouter_adapter
from agent.exceptions import AdapterNotFoundError

ADAPTERS: dict[str, Adapter] = {
    "openai": openai_adapter,
    "openrouter": openrouter_adapter,
    "ollama": ollama_adapter,
}


def register_adapter(name: str, adapter: Adapter) -> None:
    """Make an adapter selectable by name. Replaces any adapter of that name."""
    if not name:
        raise ValueError("Adapter name must be non-empty")
    ADAPTERS[name] = adapter


def get_adapter(name: str) -> Adapter:
    """Return the adapter registered under ``name``."""
    adapter = ADAPTERS.get(name)
    if adapter is None:
        raise AdapterNotFoundError(f'Adapter "{name}" not found')
    return adapter