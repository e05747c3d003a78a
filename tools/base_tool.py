"""Base class for all tools, plus helpers for wrapping plain functions."""

from __future__ import annotations

import copy
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable

DEFAULT_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


class Tool(ABC):
    """Base class for all agent tools. Subclass this to create new tools.

    ``parameters`` is a JSON schema advertised to the model; the agent loop
    never validates arguments against it. ``execute`` may be a plain method
    or a coroutine and may return any value.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = DEFAULT_PARAMETERS

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "parameters" not in cls.__dict__:
            cls.parameters = copy.deepcopy(DEFAULT_PARAMETERS)

    @abstractmethod
    def execute(self, args: Any) -> Any:
        """Execute the tool with parsed arguments. Must be implemented by subclasses."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


class FunctionTool(Tool):
    """Tool backed by a callable that receives the parsed arguments."""

    def __init__(
        self,
        name: str,
        description: str,
        func: Callable[[Any], Any],
        parameters: dict[str, Any] | None = None,
    ):
        self.name = name
        self.description = description
        self.parameters = parameters if parameters is not None else copy.deepcopy(DEFAULT_PARAMETERS)
        self._func = func

    def execute(self, args: Any) -> Any:
        return self._func(args)


def tool(
    func: Callable[[Any], Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    parameters: dict[str, Any] | None = None,
):
    """
    Decorator to convert a function into a FunctionTool.

    Can be used with or without arguments:

        @tool
        def echo(args):
            '''Echo the text argument.'''
            return args["text"]

        @tool(name="add", parameters={"type": "object", ...})
        async def add(args):
            return args["a"] + args["b"]

    The tool name defaults to the function name and the description to the
    first paragraph of its docstring.
    """

    def decorator(fn: Callable[[Any], Any]) -> FunctionTool:
        doc = inspect.getdoc(fn) or ""
        return FunctionTool(
            name=name or fn.__name__,
            description=description if description is not None else doc.split("\n\n")[0].strip(),
            func=fn,
            parameters=parameters,
        )

    if func is not None:
        return decorator(func)

    return decorator
