"""
Port allocation for network nodes.

Every node needs an RPC, a WebSocket and a P2P port.
Declared ports are used unchanged; missing ones are found by scanning
upward from a base port, skipping anything already claimed.

Allocation follows declaration order so that a partially specified
topology resolves to the same ports on every run.
"""

from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field

from paranet.config import DEFAULT_BASE_PORT, DEFAULT_SEARCH_WINDOW, HOST, MAX_PORT
from paranet.topology import NodeKey, TopologySpec
from paranet.types import PortExhaustionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NodePorts:
    """Fully resolved ports of one node."""

    rpc: int
    """JSON-RPC (HTTP) port. Readiness is probed here."""

    ws: int
    """WebSocket RPC port. Collators reach the relay chain here."""

    p2p: int
    """Peer-to-peer listen port."""

    def as_tuple(self) -> tuple[int, int, int]:
        """Ports as (rpc, ws, p2p)."""
        return (self.rpc, self.ws, self.p2p)


@dataclass(frozen=True, slots=True)
class PortAssignment(Mapping[NodeKey, NodePorts]):
    """
    Read-only mapping from node to its resolved ports.

    Iteration follows allocation order.
    """

    _ports: dict[NodeKey, NodePorts]

    def __getitem__(self, key: NodeKey) -> NodePorts:
        return self._ports[key]

    def __iter__(self) -> Iterator[NodeKey]:
        return iter(self._ports)

    def __len__(self) -> int:
        return len(self._ports)

    def all_ports(self) -> list[int]:
        """Every assigned port, in allocation order."""
        return [port for ports in self._ports.values() for port in ports.as_tuple()]


def is_port_bindable(port: int, host: str = HOST) -> bool:
    """
    Check whether a TCP port can currently be bound on host.

    Only a hint: another process may grab the port before the node binds it.
    """
    with socket.socket(socket.AF_INET6 if ":" in host else socket.AF_INET) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


@dataclass(slots=True)
class PortAllocator:
    """
    Resolves ports for every node of a topology.

    The scan cursor only moves upward, so one allocator never hands out
    the same port twice.
    """

    base_port: int = DEFAULT_BASE_PORT
    """First port scanned."""

    search_window: int = DEFAULT_SEARCH_WINDOW
    """Ports above base_port that may be scanned before giving up."""

    is_port_free: Callable[[int], bool] = is_port_bindable
    """Probe for ports held by processes outside the topology."""

    _cursor: int = field(default=0, init=False)
    """Offset of the next candidate port from base_port."""

    _claimed: set[int] = field(default_factory=set, init=False)
    """Ports already declared or allocated."""

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    """Guards the cursor and the claimed set."""

    def allocate(self, topology: TopologySpec) -> PortAssignment:
        """
        Resolve rpc, ws and p2p ports for every node.

        Nodes are visited relay first, then parachains, then collators,
        all in declaration order; each node's ports in rpc, ws, p2p order.

        Args:
            topology: Validated topology.

        Returns:
            Mapping from node key to resolved ports.

        Raises:
            PortExhaustionError: If the search window runs out.
        """
        with self._lock:
            # Declared ports are claimed up front so that no derived port
            # lands on a port a later node declares.
            self._claimed.update(topology.declared_ports())

            resolved: dict[NodeKey, NodePorts] = {}
            for key, node in topology.all_nodes():
                ports = NodePorts(
                    rpc=node.rpc_port if node.rpc_port is not None else self._next_free(),
                    ws=node.ws_port if node.ws_port is not None else self._next_free(),
                    p2p=node.p2p_port if node.p2p_port is not None else self._next_free(),
                )
                resolved[key] = ports
                logger.debug(
                    "Ports for %s: rpc=%d ws=%d p2p=%d", key, ports.rpc, ports.ws, ports.p2p
                )

        return PortAssignment(resolved)

    def _next_free(self) -> int:
        """Advance the cursor to the next unclaimed, bindable port and claim it."""
        while self._cursor < self.search_window:
            port = self.base_port + self._cursor
            self._cursor += 1

            if port > MAX_PORT:
                break
            if port in self._claimed:
                continue
            if not self.is_port_free(port):
                logger.debug("Port %d is in use, skipping", port)
                continue

            self._claimed.add(port)
            return port

        raise PortExhaustionError(self.base_port, self.search_window)

    def reset(self) -> None:
        """Forget every claim and restart the scan at base_port."""
        with self._lock:
            self._cursor = 0
            self._claimed.clear()
