"""Tests for canonicalization and task envelope/result signing and verification."""

import copy

import pytest

from quokkamesh.canonicaljson import canonicalize
from quokkamesh.envelope import (
    create_error_result,
    create_task_envelope,
    create_task_result,
    result_error,
    validate_task_envelope_structure,
    validate_task_result_structure,
    verify_task_envelope,
    verify_task_result,
)
from quokkamesh.errors import CanonicalizationError, EnvelopeError
from quokkamesh.identity import Identity


class TestCanonicalization:
    """RFC 8785 behaviour the signatures rely on."""

    def test_object_member_ordering(self):
        assert canonicalize({"b": 2, "a": 1}) == b'{"a":1,"b":2}'

    def test_whitespace_removal(self):
        result = canonicalize({"z": [3, 2, 1], "a": {"y": True, "x": False}})
        assert result == b'{"a":{"x":false,"y":true},"z":[3,2,1]}'

    def test_nested_key_sorting(self):
        result = canonicalize({"c": {"z": 1, "a": 2}, "a": 1})
        assert result == b'{"a":1,"c":{"a":2,"z":1}}'

    def test_arrays_of_objects(self):
        result = canonicalize([{"b": 1, "a": None}, "x"])
        assert result == b'[{"a":null,"b":1},"x"]'

    def test_scalars(self):
        assert canonicalize("hi") == b'"hi"'
        assert canonicalize(42) == b"42"
        assert canonicalize(None) == b"null"

    def test_non_ascii_is_utf8(self):
        assert canonicalize({"k": "é"}) == '{"k":"é"}'.encode("utf-8")

    def test_unsupported_value_raises(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({"x": object()})

    def test_key_order_irrelevant(self):
        a = {"z": 1, "a": {"c": 3, "b": [1, {"y": 2, "x": 1}]}}
        b = {"a": {"b": [1, {"x": 1, "y": 2}], "c": 3}, "z": 1}
        assert canonicalize(a) == canonicalize(b)


class TestTaskEnvelope:
    def test_builds_signed_envelope(self):
        ident = Identity.generate()
        env = create_task_envelope(ident, "peer-b", "echo", {"message": "hi"})

        assert env["from"] == ident.public_key_hex
        assert env["to"] == "peer-b"
        assert env["capability"] == "echo"
        assert env["payload"] == {"message": "hi"}
        assert isinstance(env["timestamp"], int)
        assert len(bytes.fromhex(env["signature"])) == 64
        assert verify_task_envelope(env)

    def test_task_ids_are_unique(self):
        ident = Identity.generate()
        ids = {create_task_envelope(ident, "p", "echo", {})["taskId"] for _ in range(50)}
        assert len(ids) == 50

    def test_custom_task_id(self):
        ident = Identity.generate()
        env = create_task_envelope(ident, "p", "echo", {}, task_id="custom-id-123")
        assert env["taskId"] == "custom-id-123"
        assert verify_task_envelope(env)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("taskId", "tampered-id"),
            ("to", "someone-else"),
            ("capability", "other"),
            ("payload", {"message": "tampered"}),
            ("timestamp", 1),
        ],
    )
    def test_tampered_field_fails(self, field, value):
        ident = Identity.generate()
        env = create_task_envelope(ident, "peer-b", "echo", {"message": "hi"})
        env[field] = value
        assert verify_task_envelope(env) is False

    def test_nested_payload_tamper_fails(self):
        ident = Identity.generate()
        env = create_task_envelope(ident, "p", "echo", {"amount": 100})
        env["payload"]["amount"] = 999
        assert verify_task_envelope(env) is False

    def test_swapped_sender_fails(self):
        a = Identity.generate()
        b = Identity.generate()
        env = create_task_envelope(a, "p", "echo", {})
        env["from"] = b.public_key_hex
        assert verify_task_envelope(env) is False

    def test_replaced_signature_fails(self):
        ident = Identity.generate()
        env = create_task_envelope(ident, "p", "echo", {"n": 1})
        other = create_task_envelope(ident, "p", "echo", {"n": 2})
        env["signature"] = other["signature"]
        assert verify_task_envelope(env) is False
        env["signature"] = "00" * 64
        assert verify_task_envelope(env) is False

    def test_malformed_envelopes_are_invalid(self):
        ident = Identity.generate()
        env = create_task_envelope(ident, "p", "echo", {})
        no_sig = copy.deepcopy(env)
        del no_sig["signature"]
        bad_hex = dict(env, signature="not-hex")
        assert verify_task_envelope(no_sig) is False
        assert verify_task_envelope(bad_hex) is False
        assert verify_task_envelope(dict(env, **{"from": 7})) is False
        assert verify_task_envelope("not a dict") is False


class TestTaskResult:
    def test_result_round_trip(self):
        ident = Identity.generate()
        res = create_task_result(ident, "task-1", {"echo": "hello"})
        assert res["taskId"] == "task-1"
        assert res["from"] == ident.public_key_hex
        assert verify_task_result(res)
        assert result_error(res) is None

    def test_tampered_result_fails(self):
        ident = Identity.generate()
        res = create_task_result(ident, "task-1", {"echo": "hello"})
        res["result"] = {"echo": "bye"}
        assert verify_task_result(res) is False

    def test_error_result(self):
        ident = Identity.generate()
        res = create_error_result(ident, "task-1", "unknown capability: nope")
        assert res["result"] == {"error": "unknown capability: nope"}
        assert verify_task_result(res)
        assert result_error(res) == "unknown capability: nope"

    def test_result_with_error_among_other_keys_is_not_an_error(self):
        ident = Identity.generate()
        res = create_task_result(ident, "t", {"error": "x", "value": 1})
        assert result_error(res) is None


class TestStructureValidation:
    def test_valid_envelope_structure(self):
        env = create_task_envelope(Identity.generate(), "p", "echo", None)
        validate_task_envelope_structure(env)

    def test_missing_fields(self):
        env = create_task_envelope(Identity.generate(), "p", "echo", {})
        del env["payload"]
        with pytest.raises(EnvelopeError, match="Missing"):
            validate_task_envelope_structure(env)

    def test_empty_task_id(self):
        env = create_task_envelope(Identity.generate(), "p", "echo", {})
        env["taskId"] = ""
        with pytest.raises(EnvelopeError, match="non-empty"):
            validate_task_envelope_structure(env)

    def test_bool_timestamp_rejected(self):
        res = create_task_result(Identity.generate(), "t", 1)
        res["timestamp"] = True
        with pytest.raises(EnvelopeError, match="timestamp"):
            validate_task_result_structure(res)

    def test_not_an_object(self):
        with pytest.raises(EnvelopeError, match="JSON object"):
            validate_task_result_structure(["nope"])
