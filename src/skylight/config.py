"""
Agent configuration.

Values come from keyword arguments, ``SKYLIGHT_*`` environment variables
(optionally loaded from a ``.env`` file) or a YAML file.
"""

import os
from typing import Any, Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from skylight.constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_INTERVAL,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_REPORT_HOST,
    DEFAULT_REPORT_PORT,
    DEFAULT_REPORT_RETRIES,
    DEFAULT_REPORT_TIMEOUT,
    DEFAULT_SOCKFILE_PATH,
    DEFAULT_STRATEGY,
    REPORT_PATH,
)
from skylight.exceptions import ConfigError
from skylight.trace import HiddenPredicate, hidden_categories

ENV_PREFIX = "SKYLIGHT_"


class AgentConfig(BaseModel):
    strategy: Literal["embedded", "standalone"] = DEFAULT_STRATEGY
    interval: float = DEFAULT_INTERVAL
    max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE
    sockfile_path: str = DEFAULT_SOCKFILE_PATH
    connect_timeout: float = 5.0
    respawn_interval: float = 30.0

    @field_validator("interval", "connect_timeout", "respawn_interval")
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Agent intervals and timeouts must be positive.")
        return v

    @field_validator("max_queue_size")
    def validate_queue_size(cls, v):
        if v < 1:
            raise ValueError("max_queue_size must be at least 1.")
        return v


class ReportConfig(BaseModel):
    host: str = DEFAULT_REPORT_HOST
    port: int = DEFAULT_REPORT_PORT
    ssl: bool = True
    deflate: bool = True
    timeout: float = DEFAULT_REPORT_TIMEOUT
    retries: int = DEFAULT_REPORT_RETRIES
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR

    @field_validator("retries")
    def validate_retries(cls, v):
        if v < 0:
            raise ValueError("retries cannot be negative.")
        return v

    @property
    def url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}{REPORT_PATH}"


class GCConfig(BaseModel):
    enabled: bool = False


class Config(BaseModel):
    """
    Stores everything the agent needs to build traces and report them

    Args:
        authentication (Optional[str]): Token sent in the ``Authorization`` header of every report
        log (str): Directory for the agent log, or ``"-"`` to log to stdout only
        log_level (str): Minimum level written to the log
        source_locations (bool): Whether span source file/line are reported
        hidden_categories (List[str]): Span categories that are timed but not reported
        agent (AgentConfig): Worker strategy and batching settings
        report (ReportConfig): Remote collector address and delivery settings
        gc (GCConfig): GC sampling settings
    """

    authentication: Optional[str] = None
    log: str = "-"
    log_level: str = "info"
    source_locations: bool = True
    hidden_categories: List[str] = ["skip"]
    agent: AgentConfig = Field(default_factory=AgentConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    gc: GCConfig = Field(default_factory=GCConfig)

    @field_validator("log_level")
    def validate_log_level(cls, v):
        if v.lower() not in ("debug", "info", "warning", "error"):
            raise ValueError(f"Unknown log level: {v}")
        return v.lower()

    @classmethod
    def build(cls, **values) -> "Config":
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> "Config":
        """
        Build a config from ``SKYLIGHT_*`` variables. Nested keys use a double
        underscore or the section name, e.g. ``SKYLIGHT_AGENT_STRATEGY`` or
        ``SKYLIGHT_REPORT__PORT``.
        """
        if environ is None:
            load_dotenv()
            environ = dict(os.environ)
        values = _values_from_env(environ)
        _deep_update(values, overrides)
        return cls.build(**values)

    @classmethod
    def from_yaml(cls, file_path: str, **overrides) -> "Config":
        try:
            with open(file_path, "r") as file:
                payload = yaml.safe_load(file)
        except FileNotFoundError:
            raise FileNotFoundError(f"The file {file_path} was not found.")
        except yaml.YAMLError:
            raise ConfigError(f"The file {file_path} is not a valid YAML file.")

        if payload is None:
            raise ConfigError(f"The YAML file {file_path} is empty.")
        if not isinstance(payload, dict):
            raise ConfigError(f"The YAML file {file_path} must contain a mapping.")

        _deep_update(payload, overrides)
        return cls.build(**payload)

    def hidden_predicate(self) -> HiddenPredicate:
        return hidden_categories(*self.hidden_categories)


_SECTIONS = ("agent", "report", "gc")


def _values_from_env(environ: Dict[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if "__" in name:
            section, _, field = name.partition("__")
        else:
            section, _, field = name.partition("_")
            if section not in _SECTIONS:
                section, field = "", name
        if section in _SECTIONS and field:
            values.setdefault(section, {})[field] = value
        elif name == "hidden_categories":
            values[name] = [c.strip() for c in value.split(",") if c.strip()]
        elif name in Config.model_fields:
            values[name] = value
    return values


def _deep_update(target: Dict[str, Any], updates: Dict[str, Any]):
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_update(target[key], value)
        else:
            target[key] = value
