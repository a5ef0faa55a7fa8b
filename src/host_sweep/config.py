"""
Sweep service configuration.

Loads settings from environment variables or a YAML file and validates
them with pydantic, so a bad deployment fails at startup instead of on the
first scan request.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from ._types import ProbeMethod

logger = logging.getLogger(__name__)


class SweepConfig(BaseModel):
    """Host sweep service configuration."""

    # ========================================================================
    # API server
    # ========================================================================

    api_host: str = Field(default="127.0.0.1", description="Bind address")
    api_port: int = Field(default=8000, ge=1, le=65535, description="Bind port")

    # ========================================================================
    # Probing
    # ========================================================================

    default_method: ProbeMethod = Field(
        default=ProbeMethod.ICMP,
        description="Probe strategy used when a request does not name one"
    )
    tcp_port: int = Field(
        default=80,
        ge=1,
        le=65535,
        description="Destination port for TCP connect probes"
    )
    ping_binary: str = Field(default="ping", description="ping executable")

    default_timeout: float = Field(
        default=2.0,
        gt=0,
        description="Per-probe timeout in seconds"
    )
    default_concurrency: int = Field(
        default=10,
        ge=1,
        description="Window size (batch size) when a request does not set one"
    )

    # ========================================================================
    # Limits
    # ========================================================================

    max_timeout: float = Field(default=30.0, gt=0, description="Largest accepted per-probe timeout")
    max_concurrency: int = Field(default=256, ge=1, description="Largest accepted window size")
    max_addresses: int = Field(
        default=65536,
        ge=1,
        description="Largest number of addresses one scan may expand to"
    )

    # ========================================================================
    # Streaming
    # ========================================================================

    stream_buffer_size: int = Field(
        default=256,
        ge=1,
        description="Events buffered before the scheduler blocks on emit"
    )
    disconnect_poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Seconds between client disconnect checks"
    )

    # ========================================================================
    # Inventory
    # ========================================================================

    inventory_db_path: Optional[Path] = Field(
        default=None,
        description="SQLite inventory database; recording is off when unset"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return v

    @model_validator(mode="after")
    def check_defaults_within_limits(self):
        if self.default_timeout > self.max_timeout:
            raise ValueError("default_timeout exceeds max_timeout")
        if self.default_concurrency > self.max_concurrency:
            raise ValueError("default_concurrency exceeds max_concurrency")
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> "SweepConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        values: dict = {}

        if "api" in data:
            a = data["api"]
            _copy(a, values, host="api_host", port="api_port")

        if "probe" in data:
            p = data["probe"]
            _copy(
                p, values,
                method="default_method",
                tcp_port="tcp_port",
                ping_binary="ping_binary",
                timeout="default_timeout",
                batch_size="default_concurrency",
            )

        if "limits" in data:
            lim = data["limits"]
            _copy(
                lim, values,
                max_timeout="max_timeout",
                max_concurrency="max_concurrency",
                max_addresses="max_addresses",
            )

        if "stream" in data:
            s = data["stream"]
            _copy(
                s, values,
                buffer_size="stream_buffer_size",
                disconnect_poll_interval="disconnect_poll_interval",
            )

        if "inventory" in data:
            inv = data["inventory"] or {}
            if inv.get("db"):
                values["inventory_db_path"] = Path(inv["db"])

        if "log_level" in data:
            values["log_level"] = data["log_level"]

        return cls(**values)


def _copy(section: dict, values: dict, **mapping: str) -> None:
    """Copy present YAML keys into config field names."""
    for key, field_name in mapping.items():
        if key in section:
            values[field_name] = section[key]


def load_config() -> SweepConfig:
    """Load configuration from environment variables."""
    values: dict = {
        "api_host": os.environ.get("API_HOST", "127.0.0.1"),
        "api_port": int(os.environ.get("API_PORT", "8000")),
        "default_method": os.environ.get("PROBE_METHOD", "icmp").lower(),
        "tcp_port": int(os.environ.get("TCP_PORT", "80")),
        "ping_binary": os.environ.get("PING_BINARY", "ping"),
        "default_timeout": float(os.environ.get("PROBE_TIMEOUT", "2")),
        "default_concurrency": int(os.environ.get("BATCH_SIZE", "10")),
        "max_concurrency": int(os.environ.get("MAX_CONCURRENCY", "256")),
        "max_addresses": int(os.environ.get("MAX_ADDRESSES", "65536")),
        "log_level": os.environ.get("LOG_LEVEL", "INFO"),
    }

    if db_path := os.environ.get("INVENTORY_DB_PATH"):
        values["inventory_db_path"] = Path(db_path)

    return SweepConfig(**values)


# Example sweep_config.yaml:
"""
api:
  host: "0.0.0.0"
  port: 8000

probe:
  method: icmp        # icmp | tcp
  tcp_port: 80
  timeout: 2
  batch_size: 10

limits:
  max_timeout: 30
  max_concurrency: 256
  max_addresses: 65536

stream:
  buffer_size: 256
  disconnect_poll_interval: 0.5

inventory:
  db: "/var/lib/host-sweep/inventory.db"

log_level: "INFO"
"""
