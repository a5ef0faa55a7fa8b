"""
Request models for the HTTP API.

Validates the scan request before the engine sees it. Query-string and JSON
requests share the same model. The window size travels as `batchSize`;
`concurrencyLimit` is accepted as an alias.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ._types import ProbeMethod, ScanOptions
from .config import SweepConfig
from .exceptions import InvalidRequest


class ScanRequest(BaseModel):
    """One scan request, streaming or synchronous."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    target: str = Field(..., min_length=1, description="Address, range or prefix")
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-probe timeout in seconds"
    )
    batch_size: Optional[int] = Field(
        default=None,
        ge=1,
        alias="batchSize",
        description="Concurrency limit (window size)"
    )
    concurrency_limit: Optional[int] = Field(
        default=None,
        ge=1,
        alias="concurrencyLimit",
        description="Alias of batchSize"
    )
    method: Optional[ProbeMethod] = Field(default=None, description="icmp or tcp")
    port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Port for TCP connect probes"
    )

    @field_validator("target")
    @classmethod
    def strip_target(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Target required")
        return v

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "ScanRequest":
        """Validate raw request data, raising InvalidRequest on failure."""
        if not data.get("target"):
            raise InvalidRequest("Target required")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRequest(errors) from e

    def to_options(self, config: SweepConfig) -> ScanOptions:
        """Apply config defaults and limits, producing engine options."""
        timeout = self.timeout if self.timeout is not None else config.default_timeout
        limit = self.concurrency_limit or self.batch_size or config.default_concurrency

        if timeout > config.max_timeout:
            raise InvalidRequest(f"timeout {timeout} exceeds limit {config.max_timeout}")
        if limit > config.max_concurrency:
            raise InvalidRequest(f"batchSize {limit} exceeds limit {config.max_concurrency}")

        return ScanOptions(timeout=timeout, concurrency_limit=limit)
