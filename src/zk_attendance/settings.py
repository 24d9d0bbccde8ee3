"""Connection settings resolved from environment, YAML config and CLI flags."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import cast

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from zk_attendance import const
from zk_attendance.logging_abstraction import get_logger
from zk_attendance.protocol.exceptions import ZKError

logger = get_logger(__name__)


class ConfigError(ZKError):
    """Config file missing, unreadable or invalid."""

    def __init__(self, reason: str, path: Path | None = None) -> None:
        self.path: Path | None = path
        location = f" ({path})" if path is not None else ""
        super().__init__(reason, f"Configuration error{location}: {reason}")


class ZKSettings(BaseModel):
    """Everything needed to open a session and configure the process.

    Precedence when merging: CLI flags > config file > environment.
    """

    model_config = ConfigDict(extra="ignore")

    host: str = const.ZK_HOST
    port: int = Field(default=const.ZK_PORT, ge=1, le=65535)
    password: int = Field(default=const.ZK_PASSWORD, ge=0)
    timeout: float = Field(default=const.ZK_TIMEOUT, gt=0)
    chunk_delay_ms: int = Field(default=const.ZK_CHUNK_DELAY_MS, ge=0)
    debug: bool = const.ZK_DEBUG
    log_format: str = const.ZK_LOG_FORMAT
    log_json_file: str | None = const.ZK_LOG_JSON_FILE
    log_human_output: str = const.ZK_LOG_HUMAN_OUTPUT
    metrics_enabled: bool = const.ZK_METRICS_ENABLED
    metrics_port: int = const.ZK_METRICS_PORT

    @classmethod
    def from_env(cls) -> ZKSettings:
        """Re-read ZK_* variables (after a dotenv file was loaded at runtime)."""
        json_file = os.environ.get("ZK_LOG_JSON_FILE")
        return cls(
            host=os.environ.get("ZK_HOST", const.ZK_HOST),
            port=const.env_int("ZK_PORT", const.ZK_PORT),
            password=const.env_int("ZK_PASSWORD", const.ZK_PASSWORD),
            timeout=const.env_float("ZK_TIMEOUT", const.ZK_TIMEOUT),
            chunk_delay_ms=const.env_int("ZK_CHUNK_DELAY_MS", const.ZK_CHUNK_DELAY_MS),
            debug=os.environ.get("ZK_DEBUG", "0").casefold() in const.YES_ANSWER,
            log_format=os.environ.get("ZK_LOG_FORMAT", const.ZK_LOG_FORMAT),
            log_json_file=json_file or None,
            log_human_output=os.environ.get("ZK_LOG_HUMAN_OUTPUT", const.ZK_LOG_HUMAN_OUTPUT),
            metrics_enabled=os.environ.get("ZK_METRICS_ENABLED", "0").casefold() in const.YES_ANSWER,
            metrics_port=const.env_int("ZK_METRICS_PORT", const.ZK_METRICS_PORT),
        )

    def merged(self, overrides: Mapping[str, object]) -> ZKSettings:
        """Return a validated copy with the non-None overrides applied."""
        update = {key: value for key, value in overrides.items() if value is not None}
        if not update:
            return self
        try:
            return ZKSettings.model_validate({**self.model_dump(), **update})
        except ValidationError as e:
            raise ConfigError(_first_error(e)) from e


def load_config_file(path: Path) -> dict[str, object]:
    """Load a YAML mapping of setting overrides.

    Raises:
        ConfigError: File missing, not YAML, or not a mapping at the root

    """
    config_path = path.expanduser().resolve()
    if not config_path.exists():
        msg = "config file not found"
        raise ConfigError(msg, config_path)

    logger.debug("Parsing config file: %s", config_path)
    try:
        with config_path.open() as f:
            raw_config = cast("object", yaml.safe_load(f))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file: {e}", config_path) from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, Mapping):
        msg = "expected mapping at root"
        raise ConfigError(msg, config_path)

    known = set(ZKSettings.model_fields)
    config = {str(key): value for key, value in cast("Mapping[object, object]", raw_config).items()}
    unknown = sorted(set(config) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys", extra={"keys": unknown, "path": str(config_path)})
    return {key: value for key, value in config.items() if key in known}


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}"
