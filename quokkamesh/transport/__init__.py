"""Transport contract and the in-memory implementation."""

from .interface import Discovery, MessageHandler, Transport
from .local import LocalDirectory, LocalTransport

__all__ = [
    "Discovery",
    "LocalDirectory",
    "LocalTransport",
    "MessageHandler",
    "Transport",
]
