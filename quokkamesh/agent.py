"""Agent orchestrator: signed request/response correlation over a Transport.

Outbound requests are tracked in a pending table keyed by ``taskId``,
each with its own cancellable deadline timer. Every resolution path
(result, timeout, send failure, stop, caller cancellation) removes the
entry exactly once, so a request can never be resolved twice.

Inbound tasks are verified, matched to a registered capability,
validated, and executed. Any inbound failure is answered with a signed
error result; nothing raised by a peer's message escapes the agent.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from .capabilities import Capability, CapabilityHandler, CapabilityRegistry, validate_payload
from .delegation import is_fleet_sibling, verify_delegation_cert
from .envelope import (
    create_error_result,
    create_task_envelope,
    create_task_result,
    verify_task_envelope,
    verify_task_result,
)
from .errors import (
    AgentStoppedError,
    CanonicalizationError,
    ConfigError,
    DelegationError,
    EnvelopeError,
    RequestTimeoutError,
    SignatureError,
    TransportError,
)
from .identity import Identity
from .transport.interface import Transport
from .types import DelegationCertificate, TaskEnvelope, TaskResult
from .wire import (
    CertificateMessage,
    ResultMessage,
    TaskMessage,
    WireMessage,
    decode_message,
    encode_message,
)

_LOG = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0


@dataclass
class _PendingRequest:
    task_id: str
    future: asyncio.Future
    timer: asyncio.TimerHandle
    deadline: float


def _complete(future: asyncio.Future, result: Any = None, error: Optional[BaseException] = None) -> None:
    """Resolve *future* on its own loop; a future that is already done is left alone."""

    def _apply():
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    loop = future.get_loop()
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        _apply()
    else:
        loop.call_soon_threadsafe(_apply)


class Agent:
    """A signed-task endpoint: sends requests, serves capabilities.

    Args:
        transport: Any :class:`Transport` implementation.
        identity: Signing identity; a fresh one is generated if omitted.
        delegation: This agent's certificate from its owner, if any.
        request_timeout: Per-request deadline in seconds.
    """

    def __init__(
        self,
        transport: Transport,
        identity: Optional[Identity] = None,
        delegation: Optional[DelegationCertificate] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        if request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {request_timeout}")
        self.identity = identity or Identity.generate()
        self.delegation = delegation
        self.capabilities = CapabilityRegistry()
        self._transport = transport
        self._request_timeout = float(request_timeout)

        # Guards the pending table and the peer certificate cache.
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingRequest] = {}
        self._peer_certs: dict[str, DelegationCertificate] = {}

        self._inbound: set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False

    # -- properties ---------------------------------------------------------

    @property
    def peer_address(self) -> str:
        return self._transport.peer_address

    @property
    def public_key(self) -> str:
        """Lowercase hex public key of this agent's identity."""
        return self.identity.public_key_hex

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    @property
    def started(self) -> bool:
        return self._started

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # -- lifecycle ----------------------------------------------------------

    def register_capability(self, capability: Capability, handler: CapabilityHandler) -> None:
        """Serve *capability* with *handler*. Replaces any earlier registration."""
        self.capabilities.register(capability, handler)
        _LOG.info("agent %s registered capability %s", self.peer_address, capability.name)

    async def advertise(self) -> None:
        """Re-announce the current capability list (e.g. after late registration)."""
        await self._transport.advertise(self.capabilities.list())

    async def start(self) -> None:
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        self._transport.on_message(self._handle_message)
        await self._transport.start()
        await self._transport.advertise(self.capabilities.list())
        self._started = True
        _LOG.info(
            "agent started address=%s key=%s capabilities=%d",
            self.peer_address,
            self.public_key,
            len(self.capabilities),
        )

    async def stop(self) -> None:
        """Fail every pending request, cancel inbound work, then stop the transport."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            entry.timer.cancel()
            _complete(entry.future, error=AgentStoppedError("Agent stopped"))

        inbound = list(self._inbound)
        for task in inbound:
            task.cancel()
        if inbound:
            await asyncio.gather(*inbound, return_exceptions=True)

        await self._transport.stop()
        self._started = False
        _LOG.info("agent stopped address=%s failed_pending=%d", self.peer_address, len(pending))

    # -- outbound -----------------------------------------------------------

    async def request(self, peer_address: str, capability: str, payload: Any) -> TaskResult:
        """Send a signed task to *peer_address* and wait for its verified result.

        Returns:
            The peer's signature-verified TaskResult. Inbound-side failures
            (unknown capability, bad payload, handler error) arrive as a
            result carrying ``{"error": ...}``.

        Raises:
            TransportError: The task could not be sent.
            RequestTimeoutError: No result before the deadline.
            SignatureError: The correlated result failed verification.
            AgentStoppedError: The agent stopped while waiting.
        """
        loop = asyncio.get_running_loop()
        envelope = create_task_envelope(self.identity, peer_address, capability, payload)
        task_id = envelope["taskId"]
        data = encode_message(TaskMessage(envelope=envelope))

        future = loop.create_future()
        timer = loop.call_later(self._request_timeout, self._expire, task_id)
        with self._lock:
            self._pending[task_id] = _PendingRequest(
                task_id=task_id,
                future=future,
                timer=timer,
                deadline=loop.time() + self._request_timeout,
            )
        _LOG.debug("request %s -> %s capability=%s", task_id, peer_address, capability)

        try:
            try:
                await self._transport.send(peer_address, data)
            except Exception as e:
                error = e if isinstance(e, TransportError) else TransportError(
                    f"send to {peer_address} failed: {e}"
                )
                self._settle(task_id, error=error)
            return await future
        finally:
            self._discard(task_id)

    async def exchange_cert(self, peer_address: str) -> None:
        """Send this agent's delegation certificate to *peer_address*."""
        if self.delegation is None:
            raise DelegationError("No delegation cert to exchange")
        await self._send(peer_address, CertificateMessage(cert=self.delegation))

    async def discover(self, capability_name: str) -> list[str]:
        return await self._transport.discover(capability_name)

    # -- fleet trust --------------------------------------------------------

    def check_fleet_sibling(self, remote_cert: DelegationCertificate) -> bool:
        """True iff this agent holds a certificate and it and *remote_cert* share a valid owner."""
        if self.delegation is None:
            return False
        return is_fleet_sibling(self.delegation, remote_cert)

    def get_peer_cert(self, peer_address: str) -> Optional[DelegationCertificate]:
        with self._lock:
            return self._peer_certs.get(peer_address)

    # -- pending bookkeeping ------------------------------------------------

    def _settle(self, task_id: str, result: Any = None, error: Optional[BaseException] = None) -> bool:
        with self._lock:
            entry = self._pending.pop(task_id, None)
        if entry is None:
            return False
        entry.timer.cancel()
        _complete(entry.future, result=result, error=error)
        return True

    def _discard(self, task_id: str) -> None:
        with self._lock:
            entry = self._pending.pop(task_id, None)
        if entry is None:
            return
        entry.timer.cancel()
        if not entry.future.done():
            entry.future.cancel()

    def _expire(self, task_id: str) -> None:
        if self._settle(
            task_id,
            error=RequestTimeoutError(
                f"Request {task_id} timed out after {self._request_timeout}s"
            ),
        ):
            _LOG.warning("request %s timed out", task_id)

    # -- inbound ------------------------------------------------------------

    def _handle_message(self, sender_address: str, data: bytes) -> None:
        try:
            message = decode_message(data)
        except EnvelopeError as e:
            _LOG.debug("dropping malformed message from %s: %s", sender_address, e)
            return

        # Nothing a peer sends may escape the inbound callback.
        try:
            if isinstance(message, TaskMessage):
                self._spawn(self._handle_task(sender_address, message.envelope))
            elif isinstance(message, ResultMessage):
                self._handle_result(message.result)
            elif isinstance(message, CertificateMessage):
                self._handle_certificate(sender_address, message.cert)
        except Exception:
            _LOG.warning("dropping message from %s: dispatch failed", sender_address, exc_info=True)

    def _spawn(self, coro) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            _LOG.debug("agent not started; dropping inbound task")
            return

        def _track():
            task = loop.create_task(coro)
            self._inbound.add(task)
            task.add_done_callback(self._inbound.discard)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            _track()
        else:
            loop.call_soon_threadsafe(_track)

    async def _handle_task(self, sender_address: str, envelope: TaskEnvelope) -> None:
        task_id = envelope["taskId"]
        name = envelope["capability"]

        if not verify_task_envelope(envelope):
            _LOG.warning("task %s from %s has an invalid signature", task_id, sender_address)
            await self._reply(sender_address, create_error_result(self.identity, task_id, "invalid signature"))
            return

        handler = self.capabilities.get_handler(name)
        definition = self.capabilities.get_definition(name)
        if handler is None or definition is None:
            await self._reply(
                sender_address,
                create_error_result(self.identity, task_id, f"unknown capability: {name}"),
            )
            return

        try:
            violation = validate_payload(definition, envelope["payload"])
        except Exception as e:
            _LOG.warning("payload validation for %s failed: %s", name, e)
            violation = f"payload validation failed: {e}"
        if violation is not None:
            await self._reply(sender_address, create_error_result(self.identity, task_id, violation))
            return

        try:
            value = await handler(envelope["payload"])
            result = create_task_result(self.identity, task_id, value)
        except CanonicalizationError as e:
            _LOG.warning("capability %s returned an unencodable result: %s", name, e)
            result = create_error_result(self.identity, task_id, "handler returned an unencodable result")
        except Exception as e:
            _LOG.warning("capability %s failed for task %s: %s", name, task_id, e)
            result = create_error_result(self.identity, task_id, str(e) or "handler failed")
        await self._reply(sender_address, result)

    def _handle_result(self, result: TaskResult) -> None:
        task_id = result["taskId"]
        if verify_task_result(result):
            settled = self._settle(task_id, result=result)
        else:
            settled = self._settle(task_id, error=SignatureError("invalid signature"))
        if not settled:
            _LOG.debug("discarding unmatched result %s", task_id)

    def _handle_certificate(self, sender_address: str, cert: DelegationCertificate) -> None:
        if not verify_delegation_cert(cert):
            _LOG.warning("discarding invalid certificate from %s", sender_address)
            return
        with self._lock:
            self._peer_certs[sender_address] = cert
        _LOG.info("accepted certificate from %s owner=%s", sender_address, cert["owner"])

    async def _reply(self, peer_address: str, result: TaskResult) -> None:
        try:
            await self._send(peer_address, ResultMessage(result=result))
        except TransportError as e:
            _LOG.warning("could not deliver result %s to %s: %s", result["taskId"], peer_address, e)

    async def _send(self, peer_address: str, message: WireMessage) -> None:
        data = encode_message(message)
        try:
            await self._transport.send(peer_address, data)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"send to {peer_address} failed: {e}") from e
