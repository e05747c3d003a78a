"""Abstract base class for all extensions (lifecycle hooks)."""

from abc import ABC


class Extension(ABC):
    """
    Base class for extensions. Override the hook methods you need.
    Extensions are called in registration order at each lifecycle point.
    Hooks observe the loop; they must not modify the agent's context.
    """

    name: str = ""
    enabled: bool = True

    def __init__(self, config):
        self.config = config

    async def on_loop_start(self, agent, seed, **kwargs):
        pass

    async def on_before_adapter_call(self, agent, context, **kwargs):
        pass

    async def on_after_adapter_call(self, agent, messages, **kwargs):
        pass

    async def on_tool_execute_before(self, agent, tool_call, **kwargs):
        pass

    async def on_tool_execute_after(self, agent, tool_call, result, **kwargs):
        pass

    async def on_loop_end(self, agent, messages, **kwargs):
        pass
