"""RFC 8785 JSON Canonicalization Scheme (JCS) wrapper.

Every signature in the protocol is computed over this output, so two
structurally equal values must always produce the same bytes. Delegates
to the ``jcs`` library, whose key ordering (UTF-16 code units) and
number formatting match ``JSON.stringify`` over recursively sorted keys.
"""

import jcs as _jcs

from .errors import CanonicalizationError


def canonicalize(value) -> bytes:
    """Canonicalize a JSON-serializable value to UTF-8 bytes per RFC 8785.

    Objects are emitted with keys sorted at every nesting level, arrays
    keep their order and no insignificant whitespace is produced.

    Raises:
        CanonicalizationError: If the value cannot be canonicalized
            (non-string keys, NaN, unsupported types).
    """
    try:
        return _jcs.canonicalize(value)
    except Exception as e:
        raise CanonicalizationError(f"Canonicalization failed: {e}") from e


def preimage_without(obj: dict, field: str = "signature") -> bytes:
    """Canonical bytes of *obj* with *field* removed: the signing input."""
    return canonicalize({k: v for k, v in obj.items() if k != field})
