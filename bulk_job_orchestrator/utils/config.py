"""
Configuration for Bulk Job Orchestrator

Settings can come from a mapping, a YAML/JSON file or ``BULK_*`` environment
variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..codec.csv_codec import DEFAULT_NULL_VALUE
from ..core.exceptions import ConfigurationError

ENV_PREFIX = "BULK_"


class BulkConfig(BaseModel):
    """Connection, polling and codec settings."""

    model_config = ConfigDict(extra="ignore")

    instance_url: Optional[str] = None
    access_token: Optional[str] = None
    api_version: str = "57.0"
    poll_interval: float = Field(default=1.0, gt=0)
    poll_timeout: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=60.0, gt=0)
    upload_queue_size: int = Field(default=64, ge=1)
    null_value: Optional[str] = DEFAULT_NULL_VALUE
    log_level: str = "INFO"

    @field_validator("instance_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {value}")
        return level

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BulkConfig":
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}", config_key="config") from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BulkConfig":
        """Load settings from a YAML or JSON file."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}", config_key="config") from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Malformed configuration file {path}: {e}", config_key="config") from e

        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                f"Configuration file {path} must hold a mapping, not {type(data).__name__}",
                config_key="config"
            )
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BulkConfig":
        """Load settings from ``BULK_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for name in cls.model_fields:
            value = environ.get(ENV_PREFIX + name.upper())
            if value is not None:
                data[name] = value
        return cls.from_dict(data)

    def merged(self, **overrides: Any) -> "BulkConfig":
        """Return a copy with every non-None override applied."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        return self.from_dict({**self.model_dump(), **updates})

    def require_connection(self) -> None:
        if not self.instance_url:
            raise ConfigurationError("instance_url is required", config_key="instance_url")
        if not self.access_token:
            raise ConfigurationError("access_token is required", config_key="access_token")
