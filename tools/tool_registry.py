"""Ordered tool registry used by the agent loop for dispatch."""

from __future__ import annotations

import copy
import importlib
import inspect
import logging
import pkgutil
from typing import Any, Iterator

from agent.exceptions import ToolRegistrationError
from tools.base_tool import Tool

logger = logging.getLogger(__name__)

BUILTIN_PACKAGE = "tools.builtin"


class ToolRegistry:
    """Holds the tools available to one Agent, in registration order.

    Registries are built before the loop starts and are read-only while it
    runs. Tool names are unique: registering a second tool under an existing
    name raises ToolRegistrationError.
    """

    def __init__(self):
        self._tools: list[Tool] = []
        self._by_name: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Add a tool to the registry."""
        name = getattr(tool, "name", "")
        if not isinstance(name, str) or not name.strip():
            raise ToolRegistrationError(f"Tool {tool!r} must have a non-empty name")
        if not callable(getattr(tool, "execute", None)):
            raise ToolRegistrationError(f"Tool '{name}' has no callable execute()")
        if name in self._by_name:
            raise ToolRegistrationError(f"Tool '{name}' is already registered")
        self._tools.append(tool)
        self._by_name[name] = tool

    def find(self, name: str) -> Tool | None:
        """Return the tool registered under ``name``, or None."""
        return self._by_name.get(name)

    def discover_tools(self, package: str = BUILTIN_PACKAGE) -> list[str]:
        """Import every module in ``package`` and register its Tool subclasses.

        Modules that fail to import are logged and skipped. Returns the names
        of the tools registered by this call.
        """
        registered: list[str] = []
        try:
            pkg = importlib.import_module(package)
        except ImportError as e:
            logger.warning("Failed to import tool package %s: %s", package, e)
            return registered

        for module_info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
            if module_info.name.startswith("_"):
                continue
            module_name = f"{package}.{module_info.name}"
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                logger.warning("Failed to load %s: %s", module_name, e)
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if (
                    issubclass(obj, Tool)
                    and obj.__module__ == module_name
                    and not inspect.isabstract(obj)
                    and obj.name
                    and obj.name not in self._by_name
                ):
                    self.register(obj())
                    registered.append(obj.name)
        return registered

    @property
    def tools(self) -> list[Tool]:
        """Registered tools in registration order."""
        return list(self._tools)

    @property
    def tool_names(self) -> list[str]:
        """Registered tool names in registration order."""
        return [t.name for t in self._tools]

    def get_tool_schemas(self) -> dict[str, dict[str, Any]]:
        """Return a copy of every tool's parameter schema, keyed by name."""
        return {t.name: copy.deepcopy(t.parameters) for t in self._tools}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools))
