"""
Configuration loader for TripMate.

Loads configuration from a YAML file with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import (
    ModelConfig,
    OrchestratorConfig,
    HistoryConfig,
    GuardrailConfig,
    WeatherConfig,
    ToolsConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax. An unset or empty
    variable falls back to the default.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name) or default_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_tuple(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return tuple(str(v) for v in value)


def _parse_model_config(data: dict) -> ModelConfig:
    """Parse model configuration from dict."""
    defaults = ModelConfig()
    return ModelConfig(
        base_url=data.get("base_url") or defaults.base_url,
        api_key=data.get("api_key") or "",
        name=data.get("name") or defaults.name,
        temperature=float(data.get("temperature", defaults.temperature)),
        timeout=float(data.get("timeout", defaults.timeout)),
    )


def _parse_orchestrator_config(data: dict) -> OrchestratorConfig:
    """Parse orchestrator configuration from dict."""
    defaults = OrchestratorConfig()
    after_first = str(
        data.get("tool_choice_after_first_step", defaults.tool_choice_after_first_step)
    ).lower()
    if after_first not in ("auto", "none"):
        raise ValueError(
            f"tool_choice_after_first_step must be 'auto' or 'none', got '{after_first}'"
        )

    max_steps = int(data.get("max_steps", defaults.max_steps))
    if max_steps < 1:
        raise ValueError(f"max_steps must be at least 1, got {max_steps}")

    return OrchestratorConfig(
        max_steps=max_steps,
        forced_tool=data.get("forced_tool") or defaults.forced_tool,
        trigger_keywords=_as_tuple(
            data.get("trigger_keywords"), defaults.trigger_keywords
        ),
        tool_choice_after_first_step=after_first,
        system_prompt=(data.get("system_prompt") or defaults.system_prompt).strip(),
    )


def _parse_history_config(data: dict) -> HistoryConfig:
    """Parse history store configuration from dict."""
    defaults = HistoryConfig()
    return HistoryConfig(
        capacity=int(data.get("capacity", defaults.capacity)),
        compact_threshold=int(data.get("compact_threshold", defaults.compact_threshold)),
    )


def _parse_guardrail_config(data: dict) -> GuardrailConfig:
    """Parse guardrail configuration from dict."""
    defaults = GuardrailConfig()
    return GuardrailConfig(
        enabled=_as_bool(data.get("enabled"), default=True),
        keywords=_as_tuple(data.get("keywords"), defaults.keywords),
        redirect_messages=_as_tuple(
            data.get("redirect_messages"), defaults.redirect_messages
        ),
    )


def _parse_tools_config(data: dict) -> ToolsConfig:
    """Parse tools configuration from dict."""
    weather_data = data.get("weather", {}) or {}
    defaults = WeatherConfig()
    return ToolsConfig(
        weather=WeatherConfig(
            api_key=weather_data.get("api_key") or "",
            base_url=weather_data.get("base_url") or defaults.base_url,
            timeout=float(weather_data.get("timeout", defaults.timeout)),
            max_forecast_days=int(
                weather_data.get("max_forecast_days", defaults.max_forecast_days)
            ),
        )
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server configuration from dict."""
    return ServerConfig(
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 8000)),
        workers=int(data.get("workers", 1)),
        reload=_as_bool(data.get("reload"), default=False),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(level=data.get("level") or "INFO")


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key") or "",
        secret_key=data.get("secret_key") or "",
        host=data.get("host") or "",
        debug=_as_bool(data.get("debug"), default=False),
    )


def parse_app_config(raw_config: dict) -> AppConfig:
    """
    Build an AppConfig from an already-loaded mapping.

    Environment variables are substituted before parsing.

    Raises:
        ValueError: If a section holds invalid values
    """
    raw_config = _substitute_env_vars_recursive(raw_config)

    def section(name: str) -> dict:
        return raw_config.get(name) or {}

    return AppConfig(
        version=str(raw_config.get("version", "1.0")),
        model=_parse_model_config(section("model")),
        orchestrator=_parse_orchestrator_config(section("orchestrator")),
        history=_parse_history_config(section("history")),
        guardrail=_parse_guardrail_config(section("guardrail")),
        tools=_parse_tools_config(section("tools")),
        server=_parse_server_config(section("server")),
        logging=_parse_logging_config(section("logging")),
        langfuse=_parse_langfuse_config(section("langfuse")),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded. A missing file yields
        the built-in defaults.

    Raises:
        ValueError: If the config is invalid
    """
    global _app_config

    if _app_config is not None and not reload and path is None:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        logger.warning(f"Config not found at {config_path}, using built-in defaults")
        raw_config: dict = {}
    else:
        logger.info(f"Loading configuration from {config_path}")
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f) or {}

    app_config = parse_app_config(raw_config)
    _app_config = app_config

    logger.debug(
        f"Configuration loaded: version={app_config.version}, "
        f"model={app_config.model.name}, max_steps={app_config.orchestrator.max_steps}"
    )
    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
