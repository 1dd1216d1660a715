"""Key and delegation-certificate persistence under a data directory.

Layout::

    <data_dir>/keys/agent.key        raw 32-byte ed25519 seed
    <data_dir>/keys/owner.key        raw 32-byte ed25519 seed (optional)
    <data_dir>/keys/delegation.json  this agent's certificate

The agent core never touches these files; hosts load them and pass the
results in.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from .delegation import create_delegation_cert, verify_delegation_cert
from .errors import IdentityError
from .identity import Identity
from .types import DelegationCertificate

_LOG = logging.getLogger(__name__)

KEYS_DIR = "keys"
AGENT_KEY_FILE = "agent.key"
OWNER_KEY_FILE = "owner.key"
DELEGATION_CERT_FILE = "delegation.json"
DEFAULT_CERT_TTL_MS = 365 * 24 * 60 * 60 * 1000


def _keys_dir(data_dir) -> Path:
    return Path(data_dir) / KEYS_DIR


def load_or_create_agent_identity(data_dir) -> Identity:
    """Load the agent key, generating and saving a new one if missing or corrupt."""
    path = _keys_dir(data_dir) / AGENT_KEY_FILE
    if path.exists():
        try:
            return Identity.load(str(path))
        except IdentityError as e:
            _LOG.warning("replacing unreadable agent key %s: %s", path, e)
    identity = Identity.generate()
    identity.save(str(path))
    _LOG.info("generated agent key %s", identity.public_key_hex)
    return identity


def load_owner_identity(data_dir) -> Optional[Identity]:
    """Owner key if present and valid, else None."""
    path = _keys_dir(data_dir) / OWNER_KEY_FILE
    if not path.exists():
        return None
    try:
        return Identity.load(str(path))
    except IdentityError as e:
        _LOG.warning("ignoring unreadable owner key %s: %s", path, e)
        return None


def create_owner_identity(data_dir) -> Identity:
    """Generate and persist an owner key, overwriting any existing one."""
    identity = Identity.generate()
    identity.save(str(_keys_dir(data_dir) / OWNER_KEY_FILE))
    return identity


def load_delegation_cert(data_dir) -> Optional[DelegationCertificate]:
    path = _keys_dir(data_dir) / DELEGATION_CERT_FILE
    if not path.exists():
        return None
    try:
        cert = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        _LOG.warning("ignoring unreadable delegation cert %s: %s", path, e)
        return None
    return cert if isinstance(cert, dict) else None


def save_delegation_cert(data_dir, cert: DelegationCertificate) -> None:
    path = _keys_dir(data_dir) / DELEGATION_CERT_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cert, indent=2), encoding="utf-8")
    path.chmod(0o600)


def load_or_create_delegation_cert(
    data_dir,
    agent_public_key: bytes,
    owner: Identity,
    scope: Iterable[str] = ("*",),
    ttl_ms: int = DEFAULT_CERT_TTL_MS,
) -> DelegationCertificate:
    """Reuse the stored certificate if it still verifies for this agent and owner.

    Otherwise issue a fresh one with *scope* and *ttl_ms* and store it.
    """
    cert = load_delegation_cert(data_dir)
    if (
        cert is not None
        and verify_delegation_cert(cert)
        and cert["agent"] == agent_public_key.hex()
        and cert["owner"] == owner.public_key_hex
    ):
        return cert

    cert = create_delegation_cert(owner, agent_public_key, scope, ttl_ms)
    save_delegation_cert(data_dir, cert)
    _LOG.info("issued delegation cert owner=%s agent=%s", cert["owner"], cert["agent"])
    return cert
