"""Task envelope and task result construction, signing, and verification.

Both structures are signed by their ``from`` key over the canonical
encoding of every field except ``signature``. Verification recomputes
that encoding from the current field values, so any mutation after
signing is detected.
"""

import time
import uuid
from typing import Any, Optional

from .canonicaljson import canonicalize, preimage_without
from .errors import CanonicalizationError, EnvelopeError
from .identity import Identity, verify_hex
from .types import TaskEnvelope, TaskResult

ERROR_KEY = "error"

_ENVELOPE_STRING_FIELDS = ("taskId", "from", "to", "capability", "signature")
_RESULT_STRING_FIELDS = ("taskId", "from", "signature")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _validate_fields(obj: Any, kind: str, string_fields: tuple, extra: tuple) -> None:
    if not isinstance(obj, dict):
        raise EnvelopeError(f"{kind} must be a JSON object")
    missing = set(string_fields + extra + ("timestamp",)) - set(obj.keys())
    if missing:
        raise EnvelopeError(f"Missing {kind} fields: {sorted(missing)}")
    for field in string_fields:
        if not isinstance(obj[field], str):
            raise EnvelopeError(f"{kind}.{field} must be a string")
    if not obj["taskId"]:
        raise EnvelopeError(f"{kind}.taskId must be a non-empty string")
    timestamp = obj["timestamp"]
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise EnvelopeError(f"{kind}.timestamp must be an integer")


def validate_task_envelope_structure(envelope: Any) -> None:
    """Check field presence and types; signatures are not checked here.

    Raises:
        EnvelopeError: On any structural violation.
    """
    _validate_fields(envelope, "envelope", _ENVELOPE_STRING_FIELDS, ("payload",))


def validate_task_result_structure(result: Any) -> None:
    """Check field presence and types; signatures are not checked here.

    Raises:
        EnvelopeError: On any structural violation.
    """
    _validate_fields(result, "result", _RESULT_STRING_FIELDS, ("result",))


def _verify_signed(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    signature, signer = obj.get("signature"), obj.get("from")
    try:
        message = preimage_without(obj)
    except CanonicalizationError:
        return False
    return verify_hex(signature, message, signer)


def create_task_envelope(
    identity: Identity,
    to: str,
    capability: str,
    payload: Any,
    task_id: Optional[str] = None,
) -> TaskEnvelope:
    """Build and sign a task request addressed to *to*.

    Args:
        identity: Sender's signing identity.
        to: Recipient address.
        capability: Name of the capability to invoke.
        payload: Any JSON-serializable value.
        task_id: Optional explicit task id; UUID4 generated if omitted.
    """
    unsigned = {
        "taskId": task_id or str(uuid.uuid4()),
        "from": identity.public_key_hex,
        "to": to,
        "capability": capability,
        "payload": payload,
        "timestamp": _now_ms(),
    }
    signature = identity.sign(canonicalize(unsigned))
    return {**unsigned, "signature": signature.hex()}


def verify_task_envelope(envelope: Any) -> bool:
    """True iff the envelope's signature is valid for its ``from`` key."""
    return _verify_signed(envelope)


def create_task_result(identity: Identity, task_id: str, result: Any) -> TaskResult:
    """Build and sign the response to task *task_id*."""
    unsigned = {
        "taskId": task_id,
        "from": identity.public_key_hex,
        "result": result,
        "timestamp": _now_ms(),
    }
    signature = identity.sign(canonicalize(unsigned))
    return {**unsigned, "signature": signature.hex()}


def create_error_result(identity: Identity, task_id: str, message: str) -> TaskResult:
    """Signed result carrying ``{"error": message}``."""
    return create_task_result(identity, task_id, {ERROR_KEY: message})


def verify_task_result(result: Any) -> bool:
    """True iff the result's signature is valid for its ``from`` key."""
    return _verify_signed(result)


def result_error(result: TaskResult) -> Optional[str]:
    """Error description carried by *result*, or None for a success result."""
    value = result.get("result")
    if isinstance(value, dict) and set(value) == {ERROR_KEY} and isinstance(value[ERROR_KEY], str):
        return value[ERROR_KEY]
    return None
