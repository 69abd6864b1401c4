# cadence/core/bus/codec.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from .bus_schemas import BaseEnvelope

LEGACY_KIND = "legacy.message"


@dataclass(frozen=True)
class DecodeResult:
    envelope: BaseEnvelope
    raw: Dict[str, Any]
    ok: bool
    error: Optional[str] = None


class CadenceCodec:
    """
    Encode/decode layer between envelopes and bus bytes.

    Plain JSON producers (no envelope) are wrapped so a shell one-liner like
    `PUBLISH cadence:heart:stimulus '{"text": "hello"}'` still reaches the heart.
    """

    def __init__(self, *, default_envelope_cls: Type[BaseEnvelope] = BaseEnvelope):
        self.default_envelope_cls = default_envelope_cls

    def encode(self, obj: BaseModel | Dict[str, Any]) -> bytes:
        if isinstance(obj, BaseModel):
            # aliases keep the on-the-wire field names stable (schema_id -> schema)
            return obj.model_dump_json(by_alias=True).encode("utf-8")
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def _failure(self, error: str, raw: Dict[str, Any], details: Any = None) -> DecodeResult:
        payload: Dict[str, Any] = {"error": error}
        if details is not None:
            payload["details"] = details
        return DecodeResult(
            envelope=self.default_envelope_cls(
                kind="system.error",
                source={"name": "codec"},
                payload=payload,
            ),
            raw=raw,
            ok=False,
            error=error,
        )

    def decode(self, data: bytes | str) -> DecodeResult:
        try:
            if isinstance(data, (bytes, bytearray)):
                s = data.decode("utf-8", "ignore")
            else:
                s = data
            raw = json.loads(s)
        except Exception as e:
            return self._failure(f"invalid_json: {e}", {})

        if not isinstance(raw, dict) or raw.get("schema") != "cadence.envelope":
            legacy: Dict[str, Any] = raw if isinstance(raw, dict) else {"value": raw}
            src = legacy.get("source")
            if not isinstance(src, dict):
                src = {"name": "legacy"}
            raw = {
                "schema": "cadence.envelope",
                "kind": legacy.get("kind") or LEGACY_KIND,
                "source": src,
                "payload": legacy,
            }

        try:
            env = self.default_envelope_cls.model_validate(raw)
            return DecodeResult(envelope=env, raw=raw, ok=True)
        except ValidationError as e:
            return self._failure("envelope_validation_failed", raw, details=e.errors())
