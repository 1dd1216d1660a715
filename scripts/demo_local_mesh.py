#!/usr/bin/env python3
"""Demo: two fleet agents and an outsider on one in-process directory.

No network or key files are used; everything lives in memory.

Usage:
    python scripts/demo_local_mesh.py [message]
"""

from __future__ import annotations

import asyncio
import logging
import sys

from quokkamesh import (
    Agent,
    Capability,
    Identity,
    LocalDirectory,
    LocalTransport,
    create_delegation_cert,
    result_error,
    verify_task_result,
)

ECHO = Capability(
    name="echo",
    description="Echo the message back",
    parameters={
        "type": "object",
        "required": ["message"],
        "properties": {"message": {"type": "string"}},
    },
)

ONE_HOUR_MS = 60 * 60 * 1000


async def echo(payload: dict) -> dict:
    return {"echo": payload["message"]}


async def main() -> None:
    message = sys.argv[1] if len(sys.argv) > 1 else "hello"
    directory = LocalDirectory()

    owner = Identity.generate()
    alice_id, bob_id = Identity.generate(), Identity.generate()
    alice = Agent(
        LocalTransport(directory, "alice"),
        identity=alice_id,
        delegation=create_delegation_cert(owner, alice_id.public_key_bytes, ["*"], ONE_HOUR_MS),
    )
    bob = Agent(
        LocalTransport(directory, "bob"),
        identity=bob_id,
        delegation=create_delegation_cert(owner, bob_id.public_key_bytes, ["echo"], ONE_HOUR_MS),
    )
    outsider_id = Identity.generate()
    outsider = Agent(
        LocalTransport(directory, "outsider"),
        identity=outsider_id,
        delegation=create_delegation_cert(
            Identity.generate(), outsider_id.public_key_bytes, ["*"], ONE_HOUR_MS
        ),
    )
    bob.register_capability(ECHO, echo)

    for agent in (bob, alice, outsider):
        await agent.start()
    try:
        print(f"owner            = {owner.public_key_hex}")
        print(f"alice            = {alice.public_key}")
        print(f"bob              = {bob.public_key}")
        print()

        print("--- discover echo ---")
        peers = await alice.discover("echo")
        print(f"peers            = {peers}")

        print("--- request echo ---")
        result = await alice.request(peers[0], "echo", {"message": message})
        print(f"result           = {result['result']}")
        print(f"verified         = {verify_task_result(result)}")

        print("--- request missing capability ---")
        missing = await alice.request("bob", "translate", {"text": message})
        print(f"error            = {result_error(missing)}")

        print("--- certificate exchange ---")
        await bob.exchange_cert("alice")
        await outsider.exchange_cert("alice")
        print(f"bob sibling      = {alice.check_fleet_sibling(alice.get_peer_cert('bob'))}")
        print(f"outsider sibling = {alice.check_fleet_sibling(alice.get_peer_cert('outsider'))}")
    finally:
        for agent in (alice, bob, outsider):
            await agent.stop()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
