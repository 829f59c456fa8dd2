"""YAML config loader with environment variable expansion."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


def _expand_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r"\$\{([^}]+)\}")
    def replacer(match: re.Match) -> str:
        var = match.group(1)
        return os.environ.get(var, match.group(0))
    return pattern.sub(replacer, value)


def _walk_and_expand(obj: object) -> object:
    """Recursively expand environment variables in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_expand(item) for item in obj]
    return obj


class SolrConfig(BaseModel):
    address: str = "http://localhost:8983"
    context_path: str = "/solr"
    timeout: float = 5.0          # seconds, per request
    excluded_core: str = ""       # regex searched in core names
    ignored_cores: list[str] = Field(default_factory=list)

    @field_validator("excluded_core")
    @classmethod
    def _valid_regex(cls, value: str) -> str:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid excluded_core regex {value!r}: {exc}") from exc
        return value

    @field_validator("context_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        if value and not value.startswith("/"):
            value = "/" + value
        return value.rstrip("/")


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 9231
    telemetry_path: str = "/metrics"

    @field_validator("telemetry_path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"telemetry_path must start with '/': {value!r}")
        return value


class CollectorsConfig(BaseModel):
    mbeans: bool = True
    ping: bool = True
    jvm: bool = False
    admin_metrics: bool = True

    @property
    def supplementary(self) -> list[str]:
        return [name for name in ("ping", "jvm", "admin_metrics") if getattr(self, name)]


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "rich"          # rich | text
    buffer_size: int = 500

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return value

    @field_validator("format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("rich", "text"):
            raise ValueError(f"log format must be 'rich' or 'text', got {value!r}")
        return value


class Settings(BaseModel):
    solr: SolrConfig = Field(default_factory=SolrConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    collectors: CollectorsConfig = Field(default_factory=CollectorsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``:port``) into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address {value!r}, expected host:port")
    return host or "0.0.0.0", int(port)


def load_config(path: str | Path | None = None) -> Settings:
    """Load configuration from a YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path("solr-exporter.yaml"),
            Path("solr-exporter.yml"),
            Path.home() / ".solr-exporter" / "config.yaml",
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is not None:
        path = Path(path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _walk_and_expand(raw)
        return Settings.model_validate(raw)

    return Settings()
