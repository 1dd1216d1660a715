"""Deterministic capability keys for discovery backends.

Advertisers and searchers derive the same key from a capability name, so
any content-addressed index (an HTTP indexer, a DHT) can be keyed by it.
"""

import hashlib

DEFAULT_NAMESPACE = "quokkamesh/capability"


def capability_descriptor(descriptor: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Join *namespace* and the trimmed *descriptor* with a single ``/``."""
    trimmed = descriptor.strip()
    if namespace.endswith("/"):
        return f"{namespace}{trimmed}"
    return f"{namespace}/{trimmed}"


def capability_key(descriptor: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Lowercase hex SHA-256 of the UTF-8 capability descriptor."""
    full = capability_descriptor(descriptor, namespace)
    return hashlib.sha256(full.encode("utf-8")).hexdigest()
