"""Ed25519 identity management: key generation, load, save, sign, verify.

Public keys are an agent's (or owner's) address and always travel as
lowercase hex inside protocol structures. Secret keys are the raw
32-byte ed25519 seed.
"""

from pathlib import Path

from nacl.encoding import HexEncoder
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from .errors import IdentityError

PUBLIC_KEY_SIZE = 32
SECRET_KEY_SIZE = 32
SIGNATURE_SIZE = 64


class Identity:
    """An ed25519 signing identity backed by a private key."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key

    @classmethod
    def generate(cls) -> "Identity":
        """Generate a new random ed25519 keypair (in-memory only)."""
        return cls(SigningKey.generate())

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> "Identity":
        if len(secret_key) != SECRET_KEY_SIZE:
            raise IdentityError(
                f"Invalid secret key: expected {SECRET_KEY_SIZE} bytes, "
                f"got {len(secret_key)}"
            )
        return cls(SigningKey(bytes(secret_key)))

    @classmethod
    def create(cls, path: str) -> "Identity":
        """Generate a new keypair and save it to *path*. Creates parent dirs.

        Raises:
            IdentityError: If *path* already exists (will not overwrite).
        """
        p = Path(path)
        if p.exists():
            raise IdentityError(f"Identity file already exists: {path}")
        identity = cls.generate()
        identity.save(path)
        return identity

    @classmethod
    def load(cls, path: str) -> "Identity":
        """Load an ed25519 private key from a file (raw 32 bytes)."""
        p = Path(path)
        if not p.exists():
            raise IdentityError(f"Identity file not found: {path}")
        raw = p.read_bytes()
        if len(raw) != SECRET_KEY_SIZE:
            raise IdentityError(
                f"Invalid key file: expected {SECRET_KEY_SIZE} bytes, got {len(raw)}"
            )
        return cls(SigningKey(raw))

    def save(self, path: str) -> None:
        """Save the raw 32-byte private key to disk with owner-only permissions."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(self.secret_key_bytes)
        p.chmod(0o600)

    @property
    def secret_key_bytes(self) -> bytes:
        return bytes(self._signing_key)

    @property
    def public_key_bytes(self) -> bytes:
        """Raw 32-byte ed25519 public key."""
        return bytes(self._signing_key.verify_key)

    @property
    def public_key_hex(self) -> str:
        """Lowercase hex public key: the address used in protocol structures."""
        return self._signing_key.verify_key.encode(encoder=HexEncoder).decode("ascii")

    def sign(self, message: bytes) -> bytes:
        """Sign message bytes, returning 64-byte ed25519 signature."""
        return self._signing_key.sign(message).signature

    def __repr__(self) -> str:
        return f"Identity(public_key={self.public_key_hex})"


def generate_identity() -> Identity:
    return Identity.generate()


def sign(message: bytes, secret_key: bytes) -> bytes:
    """Sign *message* with a raw 32-byte secret key."""
    return Identity.from_secret_key(secret_key).sign(message)


def verify(signature: bytes, message: bytes, public_key: bytes) -> bool:
    """Check an ed25519 signature. Never raises: bad keys or signatures yield False."""
    try:
        VerifyKey(bytes(public_key)).verify(bytes(message), bytes(signature))
    except (CryptoError, ValueError, TypeError):
        return False
    return True


def verify_hex(signature_hex: str, message: bytes, public_key_hex: str) -> bool:
    """Like :func:`verify`, with signature and key given as hex strings."""
    if not isinstance(signature_hex, str) or not isinstance(public_key_hex, str):
        return False
    try:
        signature = bytes.fromhex(signature_hex)
        public_key = bytes.fromhex(public_key_hex)
    except ValueError:
        return False
    if len(signature) != SIGNATURE_SIZE or len(public_key) != PUBLIC_KEY_SIZE:
        return False
    return verify(signature, message, public_key)
