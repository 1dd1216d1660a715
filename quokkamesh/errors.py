"""Machine-readable error categories for QuokkaMesh protocol failures."""


class QuokkaMeshError(Exception):
    """Base exception for all QuokkaMesh errors."""


class CanonicalizationError(QuokkaMeshError):
    """JSON canonicalization failed."""


class IdentityError(QuokkaMeshError):
    """Identity key loading or generation error."""


class SignatureError(QuokkaMeshError):
    """Signature verification failed."""


class EnvelopeError(QuokkaMeshError):
    """Invalid envelope or wire message structure."""


class DelegationError(QuokkaMeshError):
    """Delegation certificate missing or unusable."""


class CapabilityError(QuokkaMeshError):
    """Invalid capability definition."""


class TransportError(QuokkaMeshError):
    """Message could not be delivered by the transport."""


class RequestTimeoutError(QuokkaMeshError):
    """No correlated result arrived before the request deadline."""


class AgentStoppedError(QuokkaMeshError):
    """Agent shut down while the request was outstanding."""


class ConfigError(QuokkaMeshError):
    """Configuration file or environment value is invalid."""


class IndexerError(QuokkaMeshError):
    """Indexer transport or API error."""
