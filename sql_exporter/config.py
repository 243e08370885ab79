"""Configuration management for the SQL exporter"""
import re
from pathlib import Path
from typing import List, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__
from .errors import ConfigParseError, ConfigReadError


METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts, an empty host meaning all interfaces"""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"listen address must be host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None
    if not 0 < port_number <= 65535:
        raise ValueError(f"port out of range in listen address {address!r}")
    return host or "0.0.0.0", port_number


class Settings(BaseSettings):
    """Process settings with Pydantic validation, read from SQL_EXPORTER_* variables"""

    # Server settings
    listen_address: str = Field(default=":9012", description="Address to listen on for HTTP requests")
    config_path: Path = Field(default=Path("config.yml"), description="Query config file path")
    enable_request_logging: bool = Field(default=True, description="Enable HTTP request logging")

    # Metric settings
    namespace: str = Field(default="sql", description="Prefix for every exported metric")
    clear_stale_on_failure: bool = Field(
        default=False,
        description="Drop values of queries that did not run because a scrape failed",
    )

    # Database settings
    pool_timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for a pooled connection")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")

    # Service settings
    service_name: str = Field(default="sql-exporter", description="Service name")
    service_version: str = Field(default=__version__, description="Service version")

    model_config = SettingsConfigDict(env_prefix="SQL_EXPORTER_", case_sensitive=False)

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, v):
        parse_listen_address(v)
        return v

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v):
        if not METRIC_NAME_RE.match(v):
            raise ValueError(f"invalid metric namespace {v!r}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_file")
    @classmethod
    def ensure_parent_directories(cls, v):
        """Ensure parent directories exist for file paths"""
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    def get_listen_host_port(self) -> Tuple[str, int]:
        return parse_listen_address(self.listen_address)


class QueryDefinition(BaseModel):
    """One configured query; its first result column is the metric value"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    statement: str = Field(alias="sql", min_length=1)
    metric_name: str = Field(alias="name")
    help_text: str = Field(alias="help", min_length=1)

    @field_validator("metric_name")
    @classmethod
    def validate_metric_name(cls, v):
        if not METRIC_NAME_RE.match(v):
            raise ValueError(f"invalid metric name {v!r}")
        return v


class ExporterConfig(BaseModel):
    """Database connection descriptor plus the ordered list of queries"""

    driver_name: str = Field(min_length=1)
    data_source_name: str
    queries: List[QueryDefinition] = Field(default_factory=list)

    @field_validator("queries")
    @classmethod
    def reject_duplicate_names(cls, v):
        seen = set()
        for query in v:
            if query.metric_name in seen:
                raise ValueError(f"duplicate metric name {query.metric_name!r}")
            seen.add(query.metric_name)
        return v


def load_config(path) -> ExporterConfig:
    """Read and parse the YAML query config at ``path``"""
    path = Path(path)
    try:
        data = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigReadError(path, e) from e

    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ConfigParseError(e) from e

    if not isinstance(raw, dict):
        raise ConfigParseError("top-level document must be a mapping")

    try:
        return ExporterConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigParseError(e) from e
