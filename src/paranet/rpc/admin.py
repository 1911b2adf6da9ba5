"""
Administrative channel calls against the relay chain.

Opening an HRMP channel is a privileged relay-chain operation.
paranet only needs two calls from whatever serves it:
open a channel, and report a channel's status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Final, Protocol

from .client import DEFAULT_TIMEOUT, JsonRpcClient

OPEN_CHANNEL_METHOD: Final = "hrmp_forceOpenHrmpChannel"
"""RPC method requesting a channel open: [sender, recipient, max_capacity, max_message_size]."""

CHANNEL_STATUS_METHOD: Final = "hrmp_channelStatus"
"""RPC method returning a channel's status: [sender, recipient]."""


class ChannelStatus(Enum):
    """On-chain status of a channel."""

    ACCEPTED = "accepted"
    """Channel is open."""

    PENDING = "pending"
    """Request recorded; not yet accepted."""

    REJECTED = "rejected"
    """Request refused by the relay chain."""

    UNKNOWN = "unknown"
    """The relay chain knows nothing about this channel."""

    @classmethod
    def parse(cls, value: Any) -> ChannelStatus:
        """
        Interpret a status RPC result.

        Accepts a bare status string, an object with a `status` member,
        or null for a channel that does not exist.
        """
        if isinstance(value, dict):
            value = value.get("status")
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class ChannelAdmin(Protocol):
    """Administrative interface for HRMP channels."""

    async def open_channel(
        self,
        sender: int,
        recipient: int,
        max_capacity: int,
        max_message_size: int,
    ) -> None:
        """Request a channel open from sender to recipient."""
        ...

    async def channel_status(self, sender: int, recipient: int) -> ChannelStatus:
        """Query the current status of a channel."""
        ...


@dataclass(frozen=True, slots=True)
class RpcChannelAdmin:
    """Channel administration over JSON-RPC."""

    client: JsonRpcClient
    """Client bound to a relay-chain node."""

    @classmethod
    def from_url(cls, url: str, timeout: float = DEFAULT_TIMEOUT) -> RpcChannelAdmin:
        """Admin bound to the relay-chain RPC URL."""
        return cls(client=JsonRpcClient(url, timeout=timeout))

    async def open_channel(
        self,
        sender: int,
        recipient: int,
        max_capacity: int,
        max_message_size: int,
    ) -> None:
        """
        Request a channel open.

        Raises:
            RpcError: If the call fails or is refused.
        """
        await self.client.call(
            OPEN_CHANNEL_METHOD, [sender, recipient, max_capacity, max_message_size]
        )

    async def channel_status(self, sender: int, recipient: int) -> ChannelStatus:
        """
        Query a channel's status.

        Raises:
            RpcError: If the call fails.
        """
        result = await self.client.call(CHANNEL_STATUS_METHOD, [sender, recipient])
        return ChannelStatus.parse(result)
