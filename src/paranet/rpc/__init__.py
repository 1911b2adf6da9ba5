"""
JSON-RPC access to running nodes.

Provides:
- JsonRpcClient: plain JSON-RPC 2.0 over HTTP
- RpcReadinessProbe: liveness checks via `system_health`
- RpcChannelAdmin: HRMP channel open and status calls
"""

from .admin import (
    CHANNEL_STATUS_METHOD,
    OPEN_CHANNEL_METHOD,
    ChannelAdmin,
    ChannelStatus,
    RpcChannelAdmin,
)
from .client import JsonRpcClient
from .probe import HEALTH_METHOD, NodeEndpoint, ReadinessProbe, RpcReadinessProbe

__all__ = [
    # Client
    "JsonRpcClient",
    # Readiness
    "HEALTH_METHOD",
    "NodeEndpoint",
    "ReadinessProbe",
    "RpcReadinessProbe",
    # Channel administration
    "CHANNEL_STATUS_METHOD",
    "OPEN_CHANNEL_METHOD",
    "ChannelAdmin",
    "ChannelStatus",
    "RpcChannelAdmin",
]
