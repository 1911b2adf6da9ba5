"""Serializable snapshots of a running network."""

from __future__ import annotations

from paranet.types import CamelModel


class NodeReport(CamelModel):
    """State of one node at report time."""

    chain: str
    """Chain label, `relay` or `para-<id>`."""

    name: str
    """Node name."""

    state: str
    """Lifecycle state name."""

    pid: int | None = None
    """OS process id once spawned."""

    rpc_port: int
    """Resolved RPC port."""

    ws_port: int
    """Resolved WebSocket port."""

    p2p_port: int
    """Resolved peer-to-peer port."""

    exit_code: int | None = None
    """Return code once exited."""

    failure: str | None = None
    """Why the node failed, crashed or is unhealthy."""


class ChannelReport(CamelModel):
    """Outcome of one declared channel."""

    sender: int
    """Sending parachain."""

    recipient: int
    """Receiving parachain."""

    max_capacity: int
    """Requested queue capacity."""

    max_message_size: int
    """Requested maximum message size."""

    accepted: bool
    """Whether the relay chain accepted the channel."""

    error: str | None = None
    """Why registration failed."""


class NetworkReport(CamelModel):
    """
    Snapshot of the whole network.

    Serialized with camelCase keys by the status server.
    """

    relay_chain: str
    """Relay-chain profile."""

    healthy: bool
    """True when nothing in `failures` is listed."""

    nodes: list[NodeReport]
    """Every node, relay first, in start order."""

    channels: list[ChannelReport]
    """Every attempted channel, in declaration order."""

    failed_parachains: list[int]
    """Parachains that did not come up."""

    failures: list[str]
    """Every failure observed so far, one line each."""
