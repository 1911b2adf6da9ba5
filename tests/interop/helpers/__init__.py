"""Helper utilities for interop tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from paranet.topology import TopologySpec, topology_from_dict

FAKE_NODE = Path(__file__).with_name("fake_node.py")
"""Script standing in for node binaries."""


def fake_network(
    parachains: dict[int, list[str]],
    channels: list[tuple[int, int]] | None = None,
    relay_args: list[str] | None = None,
    base_port: int = 41_000,
) -> TopologySpec:
    """
    Topology whose nodes all run the fake node script.

    Args:
        parachains: Collator names by parachain id.
        channels: (sender, recipient) pairs to open.
        relay_args: Extra arguments for relay validators.
        base_port: Where the port scan starts.
    """
    command: dict[str, Any] = {
        "default_command": sys.executable,
        "default_args": [str(FAKE_NODE)],
    }
    data: dict[str, Any] = {
        "settings": {"base_port": base_port},
        "relaychain": {
            "chain": "rococo-local",
            **command,
            "nodes": [
                {"name": "alice", "args": list(relay_args or [])},
                {"name": "bob", "args": list(relay_args or [])},
            ],
        },
        "parachains": [
            {"id": para_id, **command, "collators": [{"name": name} for name in names]}
            for para_id, names in parachains.items()
        ],
        "hrmp_channels": [
            {
                "sender": sender,
                "recipient": recipient,
                "max_capacity": 8,
                "max_message_size": 512,
            }
            for sender, recipient in (channels or [])
        ],
    }
    return topology_from_dict(data)


__all__ = ["FAKE_NODE", "fake_network"]
