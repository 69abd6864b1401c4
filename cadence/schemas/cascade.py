# cadence/schemas/cascade.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

KIND_HEAD_OUTPUT_V1 = "cadence.head.output.v1"
KIND_STIMULUS_V1 = "cadence.stimulus.v1"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HeadOutputV1(BaseModel):
    """
    One completed generation of the chain head, as published on the bus.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    output: str
    beat_count: int = Field(..., ge=0)
    layer_order: int = Field(..., ge=1)
    tick_frequency: int = Field(..., ge=1)
    generated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("generated_at")
    @classmethod
    def _ensure_tz(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class StimulusV1(BaseModel):
    """Raw sensation delivered to the chain head from the bus."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    text: str = Field(..., min_length=1)
    source: Optional[str] = None
    received_at: datetime = Field(default_factory=_utcnow)


class ChainProfile(BaseModel):
    """Shape of the optional YAML chain profile."""

    model_config = ConfigDict(extra="forbid")

    orders: List[int] = Field(default_factory=lambda: [1, 3, 9, 27], min_length=1)
    max_batch_size: int = Field(10, ge=1)

    @field_validator("orders")
    @classmethod
    def _positive_orders(cls, v: List[int]) -> List[int]:
        bad = [o for o in v if o < 1]
        if bad:
            raise ValueError(f"layer orders must be >= 1, got {bad}")
        return v
