"""Tests for the capability registry and payload validation."""

import pytest

from quokkamesh.capabilities import (
    LLM_MESSAGE_CAPABILITY,
    LLM_MESSAGE_CAPABILITY_NAME,
    Capability,
    CapabilityRegistry,
    get_standard_capabilities,
    get_standard_capability,
    validate_payload,
)
from quokkamesh.errors import CapabilityError


async def _noop(payload):
    return payload


SCHEMA = {
    "type": "object",
    "required": ["name", "count"],
    "properties": {
        "name": {"type": "string"},
        "count": {"type": "integer"},
        "ratio": {"type": "number"},
        "tags": {"type": "array"},
        "flag": {"type": "boolean"},
    },
}


class TestCapability:
    def test_to_dict_omits_missing_parameters(self):
        cap = Capability("echo", "Echo back")
        assert cap.to_dict() == {"name": "echo", "description": "Echo back"}

    def test_from_dict_round_trip(self):
        cap = Capability("calc", "Calculate", SCHEMA)
        assert Capability.from_dict(cap.to_dict()) == cap

    def test_empty_name_rejected(self):
        with pytest.raises(CapabilityError, match="non-empty"):
            Capability("", "nothing")

    def test_non_object_parameters_rejected(self):
        with pytest.raises(CapabilityError, match="parameters"):
            Capability("x", "y", parameters=["a"])

    @pytest.mark.parametrize(
        "parameters, match",
        [
            ({"required": "name"}, "required"),
            ({"required": [1]}, "required"),
            ({"properties": ["name"]}, "properties"),
            ({"properties": "name"}, "properties"),
        ],
    )
    def test_malformed_schema_rejected(self, parameters, match):
        with pytest.raises(CapabilityError, match=match):
            Capability("x", "y", parameters=parameters)


class TestRegistry:
    def test_register_and_lookup(self):
        reg = CapabilityRegistry()
        cap = Capability("echo", "Echo back")
        reg.register(cap, _noop)
        assert reg.has("echo")
        assert reg.get_handler("echo") is _noop
        assert reg.get_definition("echo") is cap
        assert reg.list() == [cap]

    def test_absent(self):
        reg = CapabilityRegistry()
        assert not reg.has("missing")
        assert reg.get_handler("missing") is None
        assert reg.get_definition("missing") is None
        assert reg.list() == []

    def test_last_write_wins(self):
        reg = CapabilityRegistry()

        async def second(payload):
            return 2

        reg.register(Capability("echo", "v1"), _noop)
        reg.register(Capability("echo", "v2"), second)
        assert len(reg) == 1
        assert reg.get_handler("echo") is second
        assert reg.get_definition("echo").description == "v2"

    def test_list_contains_all(self):
        reg = CapabilityRegistry()
        for name in ("a", "b", "c"):
            reg.register(Capability(name, name), _noop)
        assert {c.name for c in reg.list()} == {"a", "b", "c"}

    def test_non_callable_handler_rejected(self):
        with pytest.raises(CapabilityError, match="not callable"):
            CapabilityRegistry().register(Capability("x", "y"), "nope")


class TestValidatePayload:
    def test_no_schema_accepts_anything(self):
        cap = Capability("free", "anything goes")
        assert validate_payload(cap, "text") is None
        assert validate_payload(cap, None) is None

    def test_valid_payload(self):
        cap = Capability("calc", "", SCHEMA)
        assert validate_payload(cap, {"name": "x", "count": 3, "ratio": 1, "tags": []}) is None

    def test_payload_must_be_object(self):
        cap = Capability("calc", "", SCHEMA)
        assert validate_payload(cap, ["name"]) == "Payload must be an object"

    def test_missing_required(self):
        cap = Capability("calc", "", SCHEMA)
        assert validate_payload(cap, {"name": "x"}) == "Missing required field: count"

    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"name": 1, "count": 1}, "Field name expected type string but got integer"),
            ({"name": "x", "count": 1.5}, "Field count expected type integer but got number"),
            ({"name": "x", "count": True}, "Field count expected type integer but got boolean"),
            ({"name": "x", "count": 1, "tags": {}}, "Field tags expected type array but got object"),
            ({"name": "x", "count": 1, "flag": "yes"}, "Field flag expected type boolean but got string"),
            ({"name": "x", "count": 1, "ratio": None}, "Field ratio expected type number but got null"),
        ],
    )
    def test_type_mismatch(self, payload, expected):
        cap = Capability("calc", "", SCHEMA)
        assert validate_payload(cap, payload) == expected


class TestStandardCapabilities:
    def test_llm_message_lookup(self):
        assert get_standard_capability(LLM_MESSAGE_CAPABILITY_NAME) is LLM_MESSAGE_CAPABILITY
        assert get_standard_capability("nope") is None
        assert LLM_MESSAGE_CAPABILITY in get_standard_capabilities()

    def test_llm_message_requires_text(self):
        assert validate_payload(LLM_MESSAGE_CAPABILITY, {"text": "hi"}) is None
        assert validate_payload(LLM_MESSAGE_CAPABILITY, {}) == "Missing required field: text"
        assert (
            validate_payload(LLM_MESSAGE_CAPABILITY, {"text": 5})
            == "Field text expected type string but got integer"
        )
