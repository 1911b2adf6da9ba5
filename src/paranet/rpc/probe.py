"""
Readiness probing.

A node is ready once its RPC endpoint answers a liveness query.
Nothing about chain state is interpreted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Protocol

from paranet.config import HOST, url_host
from paranet.ports import NodePorts
from paranet.types import RpcError

from .client import JsonRpcClient

logger = logging.getLogger(__name__)

HEALTH_METHOD: Final = "system_health"
"""Liveness query answered by every Substrate node."""


@dataclass(frozen=True, slots=True)
class NodeEndpoint:
    """Network address of a node's RPC interfaces."""

    host: str
    """Address the node listens on."""

    rpc_port: int
    """JSON-RPC (HTTP) port."""

    ws_port: int
    """WebSocket RPC port."""

    @classmethod
    def from_ports(cls, ports: NodePorts, host: str = HOST) -> NodeEndpoint:
        """Endpoint of a node with resolved ports."""
        return cls(host=host, rpc_port=ports.rpc, ws_port=ports.ws)

    @property
    def rpc_url(self) -> str:
        """HTTP JSON-RPC URL."""
        return f"http://{url_host(self.host)}:{self.rpc_port}"

    @property
    def ws_url(self) -> str:
        """WebSocket RPC URL."""
        return f"ws://{url_host(self.host)}:{self.ws_port}"


class ReadinessProbe(Protocol):
    """Answers whether a node responds to liveness queries."""

    async def is_ready(self, endpoint: NodeEndpoint) -> bool:
        """Return True if the node at endpoint is serving requests."""
        ...


@dataclass(frozen=True, slots=True)
class RpcReadinessProbe:
    """Probe that calls `system_health` over JSON-RPC."""

    timeout: float = 2.0
    """Per-probe request timeout in seconds."""

    method: str = HEALTH_METHOD
    """Liveness method to call."""

    async def is_ready(self, endpoint: NodeEndpoint) -> bool:
        """
        Any JSON-RPC result means ready.

        Connection refused is the normal answer while a node boots,
        so failures are logged at debug level only.
        """
        client = JsonRpcClient(endpoint.rpc_url, timeout=self.timeout)
        try:
            await client.call(self.method)
        except RpcError as exc:
            logger.debug("Not ready yet: %s", exc)
            return False
        return True
