"""In-memory transport for tests and single-process meshes.

Transports find each other through an explicit :class:`LocalDirectory`
passed at construction, so separate directories are fully isolated.
Delivery is synchronous: ``send`` hands the bytes straight to the
recipient's handler.
"""

import asyncio
import logging
import threading
import uuid
from typing import Iterable, Optional

from ..capabilities import Capability
from ..errors import TransportError
from .interface import Discovery, MessageHandler, Transport

_LOG = logging.getLogger(__name__)


class LocalDirectory(Discovery):
    """Routing table and capability index shared by a group of local transports."""

    def __init__(self):
        self._lock = threading.Lock()
        self._transports: dict[str, "LocalTransport"] = {}
        self._capabilities: dict[str, list[str]] = {}

    def attach(self, transport: "LocalTransport") -> None:
        with self._lock:
            self._transports[transport.peer_address] = transport
            self._capabilities.setdefault(transport.peer_address, [])

    def detach(self, peer_address: str) -> None:
        with self._lock:
            self._transports.pop(peer_address, None)
            self._capabilities.pop(peer_address, None)

    def lookup(self, peer_address: str) -> Optional["LocalTransport"]:
        with self._lock:
            return self._transports.get(peer_address)

    @property
    def peers(self) -> list[str]:
        with self._lock:
            return list(self._transports)

    def advertise(self, peer_address: str, capabilities: Iterable[Capability]) -> None:
        names = [c.name for c in capabilities]
        with self._lock:
            if peer_address not in self._transports:
                raise TransportError(f"LocalDirectory: unknown peer {peer_address}")
            self._capabilities[peer_address] = names

    def withdraw(self, peer_address: str) -> None:
        with self._lock:
            if peer_address in self._capabilities:
                self._capabilities[peer_address] = []

    def discover(self, capability_name: str) -> list[str]:
        with self._lock:
            return [
                address
                for address, names in self._capabilities.items()
                if capability_name in names
            ]


class LocalTransport(Transport):
    """Transport that delivers through a :class:`LocalDirectory`.

    Args:
        directory: The directory this transport registers with on start.
        peer_address: Optional fixed address; UUID4 generated if omitted.
        discovery: Optional discovery backend; defaults to *directory*.
    """

    def __init__(
        self,
        directory: LocalDirectory,
        peer_address: Optional[str] = None,
        discovery: Optional[Discovery] = None,
    ):
        self._directory = directory
        self._discovery = discovery or directory
        self._peer_address = peer_address or str(uuid.uuid4())
        self._handler: Optional[MessageHandler] = None
        self._started = False

    @property
    def peer_address(self) -> str:
        return self._peer_address

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self._directory.attach(self)
        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._directory.detach(self._peer_address)
        if self._discovery is not self._directory:
            await asyncio.to_thread(self._discovery.withdraw, self._peer_address)

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def send(self, peer_address: str, data: bytes) -> None:
        if not self._started:
            raise TransportError("LocalTransport: transport is stopped")
        target = self._directory.lookup(peer_address)
        if target is None:
            raise TransportError(f"LocalTransport: peer not found: {peer_address}")
        _LOG.debug("deliver %d bytes %s -> %s", len(data), self._peer_address, peer_address)
        target.deliver(self._peer_address, bytes(data))

    def deliver(self, sender_address: str, data: bytes) -> None:
        """Hand an inbound message to the registered handler, if any."""
        if self._handler is not None:
            self._handler(sender_address, data)

    async def advertise(self, capabilities: Iterable[Capability]) -> None:
        if not self._started:
            raise TransportError("LocalTransport: cannot advertise before start()")
        capabilities = list(capabilities)
        if self._discovery is self._directory:
            self._directory.advertise(self._peer_address, capabilities)
        else:
            await asyncio.to_thread(self._discovery.advertise, self._peer_address, capabilities)

    async def discover(self, capability_name: str) -> list[str]:
        if self._discovery is self._directory:
            return self._directory.discover(capability_name)
        return await asyncio.to_thread(self._discovery.discover, capability_name)
