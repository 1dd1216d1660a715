"""Transport and discovery contracts consumed by the agent.

The agent depends only on these contracts and behaves identically over
the in-memory transport and a networked one.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable

from ..capabilities import Capability

# Called with (sender address, raw message bytes), one message at a time.
MessageHandler = Callable[[str, bytes], None]


class Transport(ABC):
    """Message passing plus capability discovery for one agent."""

    @property
    @abstractmethod
    def peer_address(self) -> str:
        """This transport's own address, used by peers to reach it."""

    @abstractmethod
    async def start(self) -> None:
        """Begin accepting messages / join the network."""

    @abstractmethod
    async def stop(self) -> None:
        """Release resources; later ``send`` calls must fail."""

    @abstractmethod
    async def send(self, peer_address: str, data: bytes) -> None:
        """Best-effort delivery.

        Raises:
            TransportError: If the peer is unreachable or the transport is stopped.
        """

    @abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Register the single inbound-message callback (replaces any previous one)."""

    @abstractmethod
    async def advertise(self, capabilities: Iterable[Capability]) -> None:
        """Announce this agent's capabilities for discovery."""

    @abstractmethod
    async def discover(self, capability_name: str) -> list[str]:
        """Addresses of peers advertising *capability_name*."""


class Discovery(ABC):
    """Capability advertisement backend a transport can delegate to."""

    @abstractmethod
    def advertise(self, peer_address: str, capabilities: Iterable[Capability]) -> None:
        ...

    @abstractmethod
    def withdraw(self, peer_address: str) -> None:
        ...

    @abstractmethod
    def discover(self, capability_name: str) -> list[str]:
        ...
