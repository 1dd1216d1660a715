"""Capability definitions, the per-agent registry, and payload validation."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .errors import CapabilityError

_LOG = logging.getLogger(__name__)

CapabilityHandler = Callable[[Any], Awaitable[Any]]

LLM_MESSAGE_CAPABILITY_NAME = "quokkamesh/llm-message"


@dataclass(frozen=True)
class Capability:
    name: str
    description: str
    parameters: Optional[dict] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise CapabilityError("Capability name must be a non-empty string")
        if self.parameters is not None and not isinstance(self.parameters, dict):
            raise CapabilityError(f"Capability {self.name} parameters must be an object")
        if self.parameters:
            required = self.parameters.get("required")
            if required is not None and (
                not isinstance(required, list) or not all(isinstance(k, str) for k in required)
            ):
                raise CapabilityError(f"Capability {self.name} required must be a list of strings")
            properties = self.parameters.get("properties")
            if properties is not None and not isinstance(properties, dict):
                raise CapabilityError(f"Capability {self.name} properties must be an object")

    def to_dict(self) -> dict:
        out = {"name": self.name, "description": self.description}
        if self.parameters is not None:
            out["parameters"] = self.parameters
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "Capability":
        if not isinstance(data, dict):
            raise CapabilityError("Capability definition must be an object")
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            parameters=data.get("parameters"),
        )


LLM_MESSAGE_CAPABILITY = Capability(
    name=LLM_MESSAGE_CAPABILITY_NAME,
    description=(
        "Free-form text message for LLM agents. "
        "Use this to send arbitrary text to another agent."
    ),
    parameters={
        "type": "object",
        "required": ["text"],
        "properties": {
            "text": {"type": "string", "description": "The message content"},
        },
    },
)

_STANDARD_CAPABILITIES = {LLM_MESSAGE_CAPABILITY_NAME: LLM_MESSAGE_CAPABILITY}


def get_standard_capability(name: str) -> Optional[Capability]:
    return _STANDARD_CAPABILITIES.get(name)


def get_standard_capabilities() -> list[Capability]:
    return list(_STANDARD_CAPABILITIES.values())


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _type_matches(expected: str, actual: str) -> bool:
    if expected == "number":
        return actual in ("number", "integer")
    return expected == actual


def validate_payload(capability: Capability, payload: Any) -> Optional[str]:
    """Shallow structural check of *payload* against the declared schema.

    Returns:
        A description of the first violation, or None when the payload
        is acceptable. Capabilities without a schema accept anything.
    """
    schema = capability.parameters
    if schema is None:
        return None
    if not isinstance(payload, dict):
        return "Payload must be an object"

    required = schema.get("required") or []
    properties = schema.get("properties") or {}
    for key in required:
        if key not in payload:
            return f"Missing required field: {key}"

    for key, declared in properties.items():
        if key not in payload or not isinstance(declared, dict):
            continue
        expected = declared.get("type")
        if not isinstance(expected, str):
            continue
        actual = _json_type(payload[key])
        if not _type_matches(expected, actual):
            return f"Field {key} expected type {expected} but got {actual}"
    return None


class CapabilityRegistry:
    """Agent-local table of capability name -> (definition, handler).

    Registration is last-write-wins. Handlers are coroutine functions
    taking the payload; their failures are the caller's to handle.
    """

    def __init__(self):
        self._entries: dict[str, tuple[Capability, CapabilityHandler]] = {}

    def register(self, capability: Capability, handler: CapabilityHandler) -> None:
        if not callable(handler):
            raise CapabilityError(f"Handler for {capability.name} is not callable")
        if capability.name in self._entries:
            _LOG.debug("replacing capability %s", capability.name)
        self._entries[capability.name] = (capability, handler)

    def has(self, name: str) -> bool:
        return name in self._entries

    def get_handler(self, name: str) -> Optional[CapabilityHandler]:
        entry = self._entries.get(name)
        return entry[1] if entry else None

    def get_definition(self, name: str) -> Optional[Capability]:
        entry = self._entries.get(name)
        return entry[0] if entry else None

    def list(self) -> list[Capability]:
        """Registered capabilities; callers must not depend on the order."""
        return [capability for capability, _ in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)
