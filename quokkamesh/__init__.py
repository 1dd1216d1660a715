"""QuokkaMesh: signed agent identity, delegation, and task messaging."""

from .agent import Agent
from .canonicaljson import canonicalize
from .capabilities import (
    LLM_MESSAGE_CAPABILITY,
    LLM_MESSAGE_CAPABILITY_NAME,
    Capability,
    CapabilityRegistry,
    get_standard_capabilities,
    get_standard_capability,
    validate_payload,
)
from .delegation import (
    create_delegation_cert,
    is_fleet_sibling,
    scope_permits,
    verify_delegation_cert,
)
from .envelope import (
    create_task_envelope,
    create_task_result,
    result_error,
    verify_task_envelope,
    verify_task_result,
)
from .errors import (
    AgentStoppedError,
    CanonicalizationError,
    CapabilityError,
    ConfigError,
    DelegationError,
    EnvelopeError,
    IdentityError,
    IndexerError,
    QuokkaMeshError,
    RequestTimeoutError,
    SignatureError,
    TransportError,
)
from .identity import Identity, generate_identity, sign, verify
from .transport import Discovery, LocalDirectory, LocalTransport, Transport

__all__ = [
    "Agent",
    "Capability",
    "CapabilityRegistry",
    "Discovery",
    "Identity",
    "LLM_MESSAGE_CAPABILITY",
    "LLM_MESSAGE_CAPABILITY_NAME",
    "LocalDirectory",
    "LocalTransport",
    "Transport",
    "canonicalize",
    "create_delegation_cert",
    "create_task_envelope",
    "create_task_result",
    "generate_identity",
    "get_standard_capabilities",
    "get_standard_capability",
    "is_fleet_sibling",
    "result_error",
    "scope_permits",
    "sign",
    "validate_payload",
    "verify",
    "verify_delegation_cert",
    "verify_task_envelope",
    "verify_task_result",
    "AgentStoppedError",
    "CanonicalizationError",
    "CapabilityError",
    "ConfigError",
    "DelegationError",
    "EnvelopeError",
    "IdentityError",
    "IndexerError",
    "QuokkaMeshError",
    "RequestTimeoutError",
    "SignatureError",
    "TransportError",
]
