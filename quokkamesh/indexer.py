"""Capability discovery backed by one or more HTTP indexers.

Writes go to the primary (first) indexer; lookups page through every
indexer and merge the peers found. Records are keyed by
:func:`~quokkamesh.discovery.capability_key`.
"""

import logging
from typing import Iterable

import requests

from .capabilities import Capability
from .discovery import capability_key
from .errors import IndexerError
from .transport.interface import Discovery

_LOG = logging.getLogger(__name__)

_CAPABILITIES_PATH = "/v1/capabilities"
_PAGE_LIMIT = "200"


class IndexerDiscovery(Discovery):
    """Discovery backend that talks to indexer REST endpoints.

    Args:
        indexers: Indexer base URLs (first is primary for writes).
        timeout: Per-request HTTP timeout in seconds.
    """

    def __init__(self, indexers: list[str], timeout: float = 30):
        if not indexers:
            raise IndexerError("At least one indexer URL is required")
        self._indexers = [url.rstrip("/") for url in indexers]
        self._timeout = timeout

    @property
    def _primary(self) -> str:
        return self._indexers[0]

    def advertise(self, peer_address: str, capabilities: Iterable[Capability]) -> None:
        for capability in capabilities:
            self._post(
                _CAPABILITIES_PATH,
                {
                    "key": capability_key(capability.name),
                    "capability": capability.to_dict(),
                    "peer": peer_address,
                },
            )
            _LOG.debug("advertised %s for %s", capability.name, peer_address)

    def withdraw(self, peer_address: str) -> None:
        url = f"{self._primary}{_CAPABILITIES_PATH}"
        try:
            resp = requests.delete(url, params={"peer": peer_address}, timeout=self._timeout)
        except requests.RequestException as e:
            raise IndexerError(f"DELETE {url} failed: {e}") from e
        if resp.status_code not in (200, 204, 404):
            raise IndexerError(f"Indexer rejected withdraw ({resp.status_code}): {resp.text}")

    def discover(self, capability_name: str) -> list[str]:
        """Peers advertising *capability_name* across all indexers, first-seen order."""
        key = capability_key(capability_name)
        peers: list[str] = []
        for indexer in self._indexers:
            for item in self._iter_records(indexer, key):
                peer = item.get("peer")
                if item.get("key") == key and isinstance(peer, str) and peer not in peers:
                    peers.append(peer)
        return peers

    # -- internal helpers --

    def _post(self, path: str, data: dict) -> dict:
        url = f"{self._primary}{path}"
        try:
            resp = requests.post(url, json=data, timeout=self._timeout)
        except requests.RequestException as e:
            raise IndexerError(f"POST {url} failed: {e}") from e

        if resp.status_code in (200, 201):
            return resp.json()
        if resp.status_code == 409:
            # Already advertised.
            return {}

        try:
            msg = resp.json().get("error", {}).get("message", resp.text)
        except ValueError:
            msg = resp.text
        raise IndexerError(f"Indexer rejected request ({resp.status_code}): {msg}")

    def _iter_records(self, indexer: str, key: str):
        """Paginate through the indexer's capability records for *key*."""
        cursor = None
        while True:
            url = f"{indexer}{_CAPABILITIES_PATH}"
            params: dict = {"key": key, "limit": _PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor
            try:
                resp = requests.get(url, params=params, timeout=self._timeout)
            except requests.RequestException as e:
                raise IndexerError(f"GET {url} failed: {e}") from e

            if resp.status_code != 200:
                raise IndexerError(f"Indexer error ({resp.status_code}): {resp.text}")

            data = resp.json()
            yield from data.get("items", [])

            cursor = data.get("next_cursor")
            if not cursor:
                break
