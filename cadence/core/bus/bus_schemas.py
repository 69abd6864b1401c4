# cadence/core/bus/bus_schemas.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceRef(BaseModel):
    """
    Identity for the producer of a message.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Logical service name (e.g. 'cadence-witness').")
    node: Optional[str] = Field(None, description="Node/host identifier.")
    version: Optional[str] = Field(None, description="Service version.")


class ErrorInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str
    message: str
    stack: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class BaseEnvelope(BaseModel):
    """
    Versioned envelope for head outputs, stimuli, health and errors on the bus.

    NOTE: `schema_id` carries the alias "schema" to avoid shadowing
    BaseModel.schema.
    """
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    schema_id: Literal["cadence.envelope"] = Field(
        "cadence.envelope",
        alias="schema",
        description="Envelope schema identifier.",
    )
    schema_version: str = Field("1.0.0", description="Envelope schema version.")

    id: UUID = Field(default_factory=uuid4, description="Unique message id.")
    correlation_id: UUID = Field(default_factory=uuid4, description="Stable id for a flow.")

    kind: str = Field(..., description="Canonical message kind (e.g. 'cadence.head.output.v1').")

    source: ServiceRef
    created_at: datetime = Field(default_factory=utcnow)

    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_at")
    @classmethod
    def _ensure_tz(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
