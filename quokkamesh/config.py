"""Agent configuration: defaults, then an optional JSON file, then environment.

Environment variables:
    QMESH_CONFIG_PATH       – config file, or a directory searched for
                              qmesh.config.json / .qmesh.json (default: cwd)
    QMESH_DATA_DIR          – directory for keys and certificates (default ~/.qmesh)
    QMESH_REQUEST_TIMEOUT   – request deadline in seconds (default 30)
    QMESH_INDEXER_URLS      – comma-separated indexer base URLs
    QMESH_AGENT_NAME        – display name
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .agent import DEFAULT_REQUEST_TIMEOUT
from .capabilities import Capability
from .errors import CapabilityError, ConfigError

DEFAULT_CONFIG_FILES = ("qmesh.config.json", ".qmesh.json")


@dataclass
class AgentConfig:
    name: Optional[str] = None
    data_dir: Path = field(default_factory=lambda: Path.home() / ".qmesh")
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    indexer_urls: list[str] = field(default_factory=list)
    capabilities: list[Capability] = field(default_factory=list)


def _candidate_paths(explicit_path: Optional[str]) -> list[Path]:
    if explicit_path:
        return [Path(explicit_path).resolve()]
    env_path = os.environ.get("QMESH_CONFIG_PATH")
    if env_path:
        p = Path(env_path).resolve()
        if p.is_file():
            return [p]
        if p.is_dir():
            return [p / name for name in DEFAULT_CONFIG_FILES]
    return [Path.cwd() / name for name in DEFAULT_CONFIG_FILES]


def load_config_file(explicit_path: Optional[str] = None) -> dict:
    """Return the first config document found, or ``{}`` when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or not an object.
    """
    for p in _candidate_paths(explicit_path):
        if not p.exists():
            continue
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
        except ValueError as e:
            raise ConfigError(f"Invalid JSON in config file {p}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {p} must contain a JSON object")
        return raw
    return {}


def _parse_timeout(value, source: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source}: request timeout must be a number, got {value!r}") from e
    if timeout <= 0:
        raise ConfigError(f"{source}: request timeout must be positive, got {timeout}")
    return timeout


def load_config(explicit_path: Optional[str] = None) -> AgentConfig:
    """Resolve an :class:`AgentConfig` from file and environment."""
    doc = load_config_file(explicit_path)
    config = AgentConfig()

    if doc.get("name") is not None:
        config.name = str(doc["name"])
    if doc.get("dataDir"):
        config.data_dir = Path(doc["dataDir"]).expanduser().resolve()
    if doc.get("requestTimeout") is not None:
        config.request_timeout = _parse_timeout(doc["requestTimeout"], "config file")
    if doc.get("indexers") is not None:
        if not isinstance(doc["indexers"], list):
            raise ConfigError("config file: indexers must be a list of URLs")
        config.indexer_urls = [str(url) for url in doc["indexers"]]
    for entry in doc.get("capabilities") or []:
        try:
            config.capabilities.append(Capability.from_dict(entry))
        except CapabilityError as e:
            raise ConfigError(f"config file: {e}") from e

    env = os.environ
    if env.get("QMESH_AGENT_NAME"):
        config.name = env["QMESH_AGENT_NAME"]
    if env.get("QMESH_DATA_DIR"):
        config.data_dir = Path(env["QMESH_DATA_DIR"]).expanduser().resolve()
    if env.get("QMESH_REQUEST_TIMEOUT"):
        config.request_timeout = _parse_timeout(env["QMESH_REQUEST_TIMEOUT"], "QMESH_REQUEST_TIMEOUT")
    if env.get("QMESH_INDEXER_URLS"):
        config.indexer_urls = [
            url.strip() for url in env["QMESH_INDEXER_URLS"].split(",") if url.strip()
        ]
    return config
