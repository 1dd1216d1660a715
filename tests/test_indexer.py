"""Tests for capability keys and HTTP indexer discovery (requests is faked)."""

import hashlib

import pytest
import requests

from quokkamesh import indexer as indexer_module
from quokkamesh.capabilities import Capability
from quokkamesh.discovery import capability_descriptor, capability_key
from quokkamesh.errors import IndexerError
from quokkamesh.indexer import IndexerDiscovery
from quokkamesh.transport import LocalDirectory, LocalTransport

ECHO = Capability("echo", "Echo back")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeIndexer:
    """In-memory stand-in for the indexer REST API, one page of two records at a time."""

    def __init__(self):
        self.records = []
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        self.records.append(json)
        return FakeResponse(201, {"ok": True})

    def get(self, url, params=None, timeout=None):
        matching = [r for r in self.records if r["key"] == params["key"]]
        start = int(params.get("cursor") or 0)
        page = matching[start:start + 2]
        next_cursor = str(start + 2) if start + 2 < len(matching) else None
        return FakeResponse(200, {"items": page, "next_cursor": next_cursor})

    def delete(self, url, params=None, timeout=None):
        self.records = [r for r in self.records if r["peer"] != params["peer"]]
        return FakeResponse(204)


@pytest.fixture
def fake(monkeypatch):
    fake = FakeIndexer()
    monkeypatch.setattr(indexer_module.requests, "post", fake.post)
    monkeypatch.setattr(indexer_module.requests, "get", fake.get)
    monkeypatch.setattr(indexer_module.requests, "delete", fake.delete)
    return fake


class TestCapabilityKey:
    def test_descriptor_joins_namespace(self):
        assert capability_descriptor(" echo ") == "quokkamesh/capability/echo"
        assert capability_descriptor("echo", "ns/") == "ns/echo"
        assert capability_descriptor("echo", "ns") == "ns/echo"

    def test_key_is_sha256_of_descriptor(self):
        expected = hashlib.sha256(b"quokkamesh/capability/echo").hexdigest()
        assert capability_key("echo") == expected
        assert capability_key(" echo") == expected
        assert capability_key("echo") != capability_key("echo2")


class TestIndexerDiscovery:
    def test_requires_indexer(self):
        with pytest.raises(IndexerError, match="At least one"):
            IndexerDiscovery([])

    def test_advertise_posts_keyed_records(self, fake):
        disc = IndexerDiscovery(["http://idx/"])
        disc.advertise("peer-1", [ECHO])
        url, body = fake.posts[0]
        assert url == "http://idx/v1/capabilities"
        assert body == {"key": capability_key("echo"), "capability": ECHO.to_dict(), "peer": "peer-1"}

    def test_discover_pages_and_dedupes(self, fake):
        disc = IndexerDiscovery(["http://idx-1", "http://idx-2"])
        for peer in ("p1", "p2", "p3", "p1"):
            disc.advertise(peer, [ECHO])
        disc.advertise("p4", [Capability("other", "")])
        assert disc.discover("echo") == ["p1", "p2", "p3"]
        assert disc.discover("missing") == []

    def test_withdraw(self, fake):
        disc = IndexerDiscovery(["http://idx"])
        disc.advertise("p1", [ECHO])
        disc.withdraw("p1")
        assert disc.discover("echo") == []

    def test_http_error_raises(self, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(indexer_module.requests, "get", boom)
        with pytest.raises(IndexerError, match="GET http://idx/v1/capabilities failed"):
            IndexerDiscovery(["http://idx"]).discover("echo")

    def test_rejected_post_raises(self, monkeypatch):
        monkeypatch.setattr(
            indexer_module.requests,
            "post",
            lambda *a, **k: FakeResponse(400, {"error": {"message": "bad key"}}),
        )
        with pytest.raises(IndexerError, match="bad key"):
            IndexerDiscovery(["http://idx"]).advertise("p", [ECHO])

    def test_conflict_is_already_advertised(self, monkeypatch):
        monkeypatch.setattr(indexer_module.requests, "post", lambda *a, **k: FakeResponse(409))
        IndexerDiscovery(["http://idx"]).advertise("p", [ECHO])

    @pytest.mark.asyncio
    async def test_transport_uses_indexer_for_discovery(self, fake):
        directory = LocalDirectory()
        disc = IndexerDiscovery(["http://idx"])
        a = LocalTransport(directory, "a", discovery=disc)
        b = LocalTransport(directory, "b", discovery=disc)
        await a.start()
        await b.start()
        await b.advertise([ECHO])
        assert await a.discover("echo") == ["b"]
        assert directory.discover("echo") == []
        await b.stop()
        assert await a.discover("echo") == []
