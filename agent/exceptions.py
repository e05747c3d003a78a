"""Custom exceptions for the tool-calling agent loop."""


class AgentError(Exception):
    """Base class for every failure raised out of an agent invocation."""
    pass


class ConfigError(AgentError):
    """Raised when configuration is invalid or missing."""
    pass


class AdapterNotFoundError(ConfigError):
    """Raised when an Agent is constructed with an unknown adapter name."""
    pass


class ToolRegistrationError(ConfigError):
    """Raised when a tool cannot be registered (invalid or duplicate name)."""
    pass


class AdapterError(AgentError):
    """Raised when a provider adapter cannot produce the next turn."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class TransportError(AdapterError):
    """Raised when the provider cannot be reached (connection, DNS, timeout)."""
    pass


class ProviderHttpError(AdapterError):
    """Raised when the provider answers with a non-success HTTP status."""

    def __init__(self, message: str, status: int, provider: str = ""):
        super().__init__(message, provider)
        self.status = status


class ProviderApplicationError(AdapterError):
    """Raised when a success response carries an error payload."""
    pass


class MalformedResponseError(AdapterError):
    """Raised when a response body is unparseable or missing the reply."""
    pass


class UnknownToolError(AgentError):
    """Raised when the model requests a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f'Tool "{tool_name}" is not registered')
        self.tool_name = tool_name


class LoopBoundExceeded(AgentError):
    """Raised when the run loop exceeds its maximum number of rounds."""

    def __init__(self, max_rounds: int):
        super().__init__(
            f"Agent loop exceeded {max_rounds} round(s) without a final reply"
        )
        self.max_rounds = max_rounds


class ToolExecutionError(Exception):
    """Raised when a tool fails during execution. Always captured by the loop."""
    pass
