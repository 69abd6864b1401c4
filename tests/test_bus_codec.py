import json

from cadence.core.bus.bus_schemas import BaseEnvelope, ServiceRef
from cadence.core.bus.codec import LEGACY_KIND, CadenceCodec
from cadence.schemas.cascade import KIND_HEAD_OUTPUT_V1, HeadOutputV1


def _source():
    return ServiceRef(name="cadence-witness", node="test", version="0.1.0")


def test_envelope_encodes_with_schema_alias():
    env = BaseEnvelope(kind=KIND_HEAD_OUTPUT_V1, source=_source(), payload={"output": "hi"})
    raw = json.loads(CadenceCodec().encode(env))
    assert raw["schema"] == "cadence.envelope"
    assert "schema_id" not in raw


def test_decode_envelope_round_trip_keeps_payload():
    codec = CadenceCodec()
    payload = HeadOutputV1(output="I am", beat_count=4, layer_order=1, tick_frequency=2)
    env = BaseEnvelope(kind=KIND_HEAD_OUTPUT_V1, source=_source(), payload=payload.model_dump(mode="json"))

    decoded = codec.decode(codec.encode(env))

    assert decoded.ok
    assert decoded.envelope.kind == KIND_HEAD_OUTPUT_V1
    assert HeadOutputV1.model_validate(decoded.envelope.payload) == payload


def test_plain_json_is_wrapped():
    decoded = CadenceCodec().decode(b'{"text": "a door slams"}')
    assert decoded.ok
    assert decoded.envelope.kind == LEGACY_KIND
    assert decoded.envelope.payload == {"text": "a door slams"}


def test_invalid_json_reports_error():
    decoded = CadenceCodec().decode(b"{not json")
    assert not decoded.ok
    assert decoded.error.startswith("invalid_json")
    assert decoded.envelope.kind == "system.error"


def test_invalid_envelope_reports_validation_error():
    decoded = CadenceCodec().decode(json.dumps({"schema": "cadence.envelope", "kind": "x"}))
    assert not decoded.ok
    assert decoded.error == "envelope_validation_failed"


def test_plain_json_kind_is_kept():
    decoded = CadenceCodec().decode(b'{"kind": "cadence.stimulus.v1", "text": "hum"}')
    assert decoded.ok
    assert decoded.envelope.kind == "cadence.stimulus.v1"
