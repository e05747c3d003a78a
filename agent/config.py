"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from typing import Any

from agent.exceptions import ConfigError

ADAPTER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


@dataclass
class ProviderConfig:
    """Adapter selection and the options forwarded to it."""
    adapter: str = "openai"
    base_url: str | None = None
    api_key: str = ""
    model: str | None = None
    system_prompt: str | None = None
    connect_timeout: float = 10.0
    read_timeout: float = 120.0
    extras: dict = field(default_factory=dict)

    def to_options(self) -> dict[str, Any]:
        """Build the opaque option mapping handed to the adapter."""
        options: dict[str, Any] = {
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
        }
        if self.base_url:
            options["base_url"] = self.base_url
        if self.api_key:
            options["api_key"] = self.api_key
        if self.model:
            options["model"] = self.model
        if self.system_prompt:
            options["system_prompt"] = self.system_prompt
        options.update(self.extras)
        return options


@dataclass
class ToolExecutionConfig:
    """Configuration for tool execution behavior."""
    default_timeout: float | None = None
    timeouts: dict[str, float] = field(default_factory=dict)
    parallel: bool = False
    discover_builtin: bool = True


@dataclass
class ExtensionsConfig:
    """Configuration for extension toggles."""
    enabled_map: dict[str, bool] = field(default_factory=dict)


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and metrics logging."""
    enabled: bool = False
    log_dir: str = "./data/metrics"
    otel_enabled: bool = False
    otel_endpoint: str | None = None
    otel_service_name: str = "tool-loop-agents"


@dataclass
class AgentConfig:
    """Complete agent configuration."""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    tool_execution: ToolExecutionConfig = field(default_factory=ToolExecutionConfig)
    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    max_rounds: int | None = None
    data_dir: str = "data"
    log_dir: str = "data/logs"


def load_config(config_path: str = "config.json") -> AgentConfig:
    """Load configuration from JSON file with defaults and env overrides."""
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
    else:
        raw = {}

    data_dir = raw.get("data_dir", "data")
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError("data_dir must be a non-empty string")

    provider = _load_provider_settings(_section(raw, "provider"))
    _apply_env_overrides(provider)

    tool_execution = _load_tool_execution_settings(_section(raw, "tool_execution"))
    extensions = _load_extensions_settings(raw.get("extensions", {}))
    telemetry = _load_telemetry_settings(_section(raw, "telemetry"), data_dir)

    max_rounds_raw = raw.get("max_rounds")
    max_rounds = None
    if max_rounds_raw is not None:
        max_rounds = _coerce_int(max_rounds_raw, "max_rounds", 1)

    log_dir = raw.get("log_dir", os.path.join(data_dir, "logs"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("log_dir must be a non-empty string")

    return AgentConfig(
        provider=provider,
        tool_execution=tool_execution,
        extensions=extensions,
        telemetry=telemetry,
        max_rounds=max_rounds,
        data_dir=data_dir,
        log_dir=log_dir,
    )


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be an object")
    return value


def _load_provider_settings(raw: dict) -> ProviderConfig:
    """Parse and validate provider settings."""
    adapter = raw.get("adapter", "openai")
    if not isinstance(adapter, str) or not adapter.strip():
        raise ConfigError("provider.adapter must be a non-empty string")

    base_url = _optional_str(raw.get("base_url"), "provider.base_url")
    model = _optional_str(raw.get("model"), "provider.model")
    system_prompt = _optional_str(raw.get("system_prompt"), "provider.system_prompt")

    api_key = raw.get("api_key", "")
    if not isinstance(api_key, str):
        raise ConfigError("provider.api_key must be a string")

    connect_timeout = _coerce_float(raw.get("connect_timeout", 10.0), "provider.connect_timeout", 0.1)
    read_timeout = _coerce_float(raw.get("read_timeout", 120.0), "provider.read_timeout", 0.1)

    extras = raw.get("extras", {})
    if extras is None:
        extras = {}
    if not isinstance(extras, dict):
        raise ConfigError("provider.extras must be an object")

    return ProviderConfig(
        adapter=adapter.strip(),
        base_url=base_url,
        api_key=api_key.strip(),
        model=model,
        system_prompt=system_prompt,
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        extras=dict(extras),
    )


def _apply_env_overrides(provider: ProviderConfig) -> None:
    env_adapter = os.getenv("AGENT_ADAPTER")
    if env_adapter:
        provider.adapter = env_adapter.strip()
    env_base_url = os.getenv("AGENT_BASE_URL")
    if env_base_url:
        provider.base_url = env_base_url.strip()
    env_model = os.getenv("AGENT_MODEL")
    if env_model:
        provider.model = env_model.strip()
    env_key = os.getenv("AGENT_API_KEY")
    if env_key:
        provider.api_key = env_key.strip()
    if not provider.api_key and provider.adapter in ADAPTER_KEY_ENV:
        provider.api_key = os.getenv(ADAPTER_KEY_ENV[provider.adapter], "").strip()


def _load_tool_execution_settings(raw: dict) -> ToolExecutionConfig:
    """Parse and validate tool execution settings."""
    default_timeout_raw = raw.get("default_timeout")
    default_timeout = None
    if default_timeout_raw is not None:
        default_timeout = _coerce_float(default_timeout_raw, "tool_execution.default_timeout", 0.01)

    timeouts_raw = raw.get("timeouts", {})
    if timeouts_raw is None:
        timeouts_raw = {}
    if not isinstance(timeouts_raw, dict):
        raise ConfigError("tool_execution.timeouts must be an object")

    timeouts: dict[str, float] = {}
    for key, value in timeouts_raw.items():
        if not isinstance(key, str):
            raise ConfigError("tool_execution.timeouts keys must be strings")
        timeouts[key] = _coerce_float(value, f"tool_execution.timeouts.{key}", 0.01)

    parallel = raw.get("parallel", False)
    if not isinstance(parallel, bool):
        raise ConfigError("tool_execution.parallel must be a boolean")

    discover_builtin = raw.get("discover_builtin", True)
    if not isinstance(discover_builtin, bool):
        raise ConfigError("tool_execution.discover_builtin must be a boolean")

    return ToolExecutionConfig(
        default_timeout=default_timeout,
        timeouts=timeouts,
        parallel=parallel,
        discover_builtin=discover_builtin,
    )


def _load_extensions_settings(raw: dict) -> ExtensionsConfig:
    """Parse and validate extension toggle settings."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("extensions must be an object mapping extension name to boolean")
    enabled_map: dict[str, bool] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigError("extensions keys must be non-empty strings")
        if not isinstance(value, bool):
            raise ConfigError(f"extensions.{key} must be a boolean")
        enabled_map[key.strip()] = value
    return ExtensionsConfig(enabled_map=enabled_map)


def _load_telemetry_settings(raw: dict, data_dir: str) -> TelemetryConfig:
    """Parse and validate telemetry settings."""
    enabled = raw.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError("telemetry.enabled must be a boolean")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "metrics"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("telemetry.log_dir must be a non-empty string")

    otel_enabled = raw.get("otel_enabled", False)
    if not isinstance(otel_enabled, bool):
        raise ConfigError("telemetry.otel_enabled must be a boolean")

    otel_endpoint = _optional_str(raw.get("otel_endpoint"), "telemetry.otel_endpoint")

    otel_service_name = raw.get("otel_service_name", "tool-loop-agents")
    if not isinstance(otel_service_name, str) or not otel_service_name.strip():
        raise ConfigError("telemetry.otel_service_name must be a non-empty string")

    return TelemetryConfig(
        enabled=enabled,
        log_dir=log_dir,
        otel_enabled=otel_enabled,
        otel_endpoint=otel_endpoint,
        otel_service_name=otel_service_name.strip(),
    )


def _optional_str(value: object, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty string if provided")
    return value.strip()


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
