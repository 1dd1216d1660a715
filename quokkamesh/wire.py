"""Wire messages: the tagged union multiplexed over a single transport channel.

Every write is the canonical encoding of one of::

    {"kind": "task", "envelope": TaskEnvelope}
    {"kind": "result", "result": TaskResult}
    {"kind": "certificate", "cert": DelegationCertificate}
"""

import json
from dataclasses import dataclass
from typing import Union

from .canonicaljson import canonicalize
from .envelope import validate_task_envelope_structure, validate_task_result_structure
from .errors import EnvelopeError
from .types import DelegationCertificate, TaskEnvelope, TaskResult

KIND_TASK = "task"
KIND_RESULT = "result"
KIND_CERTIFICATE = "certificate"


@dataclass(frozen=True)
class TaskMessage:
    envelope: TaskEnvelope


@dataclass(frozen=True)
class ResultMessage:
    result: TaskResult


@dataclass(frozen=True)
class CertificateMessage:
    cert: DelegationCertificate


WireMessage = Union[TaskMessage, ResultMessage, CertificateMessage]


def encode_message(message: WireMessage) -> bytes:
    if isinstance(message, TaskMessage):
        return canonicalize({"kind": KIND_TASK, "envelope": message.envelope})
    if isinstance(message, ResultMessage):
        return canonicalize({"kind": KIND_RESULT, "result": message.result})
    if isinstance(message, CertificateMessage):
        return canonicalize({"kind": KIND_CERTIFICATE, "cert": message.cert})
    raise EnvelopeError(f"Unknown wire message type: {type(message).__name__}")


def decode_message(data: bytes) -> WireMessage:
    """Parse and structurally validate inbound bytes.

    Signatures are not checked here; that is the receiver's job.

    Raises:
        EnvelopeError: If the bytes are not a well-formed wire message.
    """
    try:
        parsed = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError, TypeError, RecursionError) as e:
        raise EnvelopeError(f"Undecodable wire message: {e}") from e
    if not isinstance(parsed, dict):
        raise EnvelopeError("Wire message must be a JSON object")

    kind = parsed.get("kind")
    if kind == KIND_TASK:
        envelope = parsed.get("envelope")
        validate_task_envelope_structure(envelope)
        return TaskMessage(envelope=envelope)
    if kind == KIND_RESULT:
        result = parsed.get("result")
        validate_task_result_structure(result)
        return ResultMessage(result=result)
    if kind == KIND_CERTIFICATE:
        cert = parsed.get("cert")
        if not isinstance(cert, dict) or not isinstance(cert.get("owner"), str):
            raise EnvelopeError("certificate message must carry an object with an owner")
        return CertificateMessage(cert=cert)
    raise EnvelopeError(f"Unknown wire message kind: {kind!r}")
