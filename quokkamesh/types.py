"""Typed dictionaries for QuokkaMesh protocol objects.

Field names are the wire names; they are part of every signing preimage.
The envelope types use the functional form because ``from`` is a keyword.
"""

from typing import Any, TypedDict


class DelegationCertificate(TypedDict):
    owner: str
    agent: str
    scope: list[str]
    issuedAt: int
    expiresAt: int
    signature: str


TaskEnvelope = TypedDict(
    "TaskEnvelope",
    {
        "taskId": str,
        "from": str,
        "to": str,
        "capability": str,
        "payload": Any,
        "timestamp": int,
        "signature": str,
    },
)

TaskResult = TypedDict(
    "TaskResult",
    {
        "taskId": str,
        "from": str,
        "result": Any,
        "timestamp": int,
        "signature": str,
    },
)
