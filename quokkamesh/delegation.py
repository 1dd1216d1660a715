"""Owner-issued delegation certificates and fleet-sibling checks.

An owner signs a certificate binding an agent's public key to the
owner's public key. Agents whose valid certificates share an owner are
fleet siblings. Verification is a pure function of the certificate and
the current time, so callers must re-verify rather than cache a result.
"""

import time
from fnmatch import fnmatchcase
from typing import Iterable, Optional

from .canonicaljson import canonicalize, preimage_without
from .errors import CanonicalizationError, DelegationError
from .identity import Identity, verify_hex
from .types import DelegationCertificate

_REQUIRED_FIELDS = ("owner", "agent", "scope", "issuedAt", "expiresAt", "signature")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def create_delegation_cert(
    owner: Identity,
    agent_public_key,
    scope: Iterable[str],
    ttl_ms: int,
) -> DelegationCertificate:
    """Issue a certificate authorizing *agent_public_key* for *ttl_ms* milliseconds.

    Args:
        owner: The owner's signing identity.
        agent_public_key: Agent public key as raw bytes or hex string.
        scope: Capability-name patterns the agent may act on.
        ttl_ms: Lifetime in milliseconds; must be positive.

    Returns:
        A signed certificate dict.
    """
    if not _is_int(ttl_ms) or ttl_ms <= 0:
        raise DelegationError(f"ttl_ms must be a positive integer, got {ttl_ms!r}")
    if isinstance(agent_public_key, (bytes, bytearray)):
        agent_hex = bytes(agent_public_key).hex()
    else:
        try:
            raw = bytes.fromhex(str(agent_public_key))
        except ValueError as e:
            raise DelegationError(f"agent public key is not valid hex: {e}") from e
        agent_hex = raw.hex()
    if len(agent_hex) != 64:
        raise DelegationError(f"agent public key must be 32 bytes, got {len(agent_hex) // 2}")

    now = _now_ms()
    unsigned = {
        "owner": owner.public_key_hex,
        "agent": agent_hex,
        "scope": list(scope),
        "issuedAt": now,
        "expiresAt": now + ttl_ms,
    }
    signature = owner.sign(canonicalize(unsigned))
    return {**unsigned, "signature": signature.hex()}


def verify_delegation_cert(cert, now_ms: Optional[int] = None) -> bool:
    """Return True iff *cert* is unexpired and signed by its ``owner``.

    Never raises; structurally invalid certificates are simply invalid.
    """
    if not isinstance(cert, dict):
        return False
    if any(field not in cert for field in _REQUIRED_FIELDS):
        return False
    issued_at, expires_at = cert["issuedAt"], cert["expiresAt"]
    if not _is_int(issued_at) or not _is_int(expires_at):
        return False
    if expires_at <= issued_at:
        return False
    now = _now_ms() if now_ms is None else now_ms
    if now >= expires_at:
        return False
    try:
        message = preimage_without(cert)
    except CanonicalizationError:
        return False
    return verify_hex(cert["signature"], message, cert["owner"])


def is_fleet_sibling(cert_a, cert_b) -> bool:
    """True iff both certificates verify independently and share an owner."""
    return (
        verify_delegation_cert(cert_a)
        and verify_delegation_cert(cert_b)
        and cert_a["owner"] == cert_b["owner"]
    )


def scope_permits(cert, capability_name: str) -> bool:
    """True iff a scope pattern of *cert* matches *capability_name* (``*`` wildcards)."""
    scope = cert.get("scope") if isinstance(cert, dict) else None
    if not isinstance(scope, list):
        return False
    return any(
        isinstance(pattern, str) and fnmatchcase(capability_name, pattern)
        for pattern in scope
    )
