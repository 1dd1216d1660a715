"""Assemble a ready-to-run agent from configuration and the keystore."""

import logging
from typing import Any

from .agent import Agent
from .capabilities import LLM_MESSAGE_CAPABILITY, Capability
from .config import AgentConfig
from .keystore import (
    load_or_create_agent_identity,
    load_or_create_delegation_cert,
    load_owner_identity,
)
from .transport.interface import Transport

_LOG = logging.getLogger(__name__)


async def llm_message_handler(payload: Any) -> dict:
    """Default handler for the standard LLM message capability: acknowledge the text."""
    text = payload.get("text") if isinstance(payload, dict) else None
    return {"received": True, "text": text if isinstance(text, str) else ""}


def _placeholder_handler(capability: Capability):
    async def handler(payload: Any) -> dict:
        return {
            "capability": capability.name,
            "payload": payload,
            "message": "Handler not implemented; register one with Agent.register_capability",
        }

    return handler


def build_agent(transport: Transport, config: AgentConfig) -> Agent:
    """Create an agent with the identity and certificate from ``config.data_dir``.

    The standard LLM message capability is always registered. Capabilities
    listed in the config get a placeholder handler until the host
    registers a real one.
    """
    identity = load_or_create_agent_identity(config.data_dir)
    owner = load_owner_identity(config.data_dir)
    delegation = None
    if owner is not None:
        delegation = load_or_create_delegation_cert(
            config.data_dir, identity.public_key_bytes, owner
        )

    agent = Agent(
        transport,
        identity=identity,
        delegation=delegation,
        request_timeout=config.request_timeout,
    )
    agent.register_capability(LLM_MESSAGE_CAPABILITY, llm_message_handler)
    for capability in config.capabilities:
        if capability.name == LLM_MESSAGE_CAPABILITY.name:
            continue
        agent.register_capability(capability, _placeholder_handler(capability))
    return agent


async def run_agent(transport: Transport, config: AgentConfig) -> Agent:
    """Build and start an agent."""
    agent = build_agent(transport, config)
    await agent.start()
    _LOG.info("agent %s running with %d capabilities", config.name or agent.peer_address, len(agent.capabilities))
    return agent
