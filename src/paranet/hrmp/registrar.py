"""
HRMP channel registration.

Each declared channel is requested on the relay chain and then polled
until the relay chain reports it accepted. Channels are independent:
one failing never prevents the next from being attempted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from paranet import metrics
from paranet.rpc import ChannelAdmin, ChannelStatus
from paranet.topology import ChannelSpec
from paranet.types import ChannelRegistrationError, RpcError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelOutcome:
    """Result of registering one channel."""

    channel: ChannelSpec
    """The declared channel."""

    error: ChannelRegistrationError | None = None
    """Why registration failed. None when accepted."""

    @property
    def accepted(self) -> bool:
        """Whether the relay chain accepted the channel."""
        return self.error is None


@dataclass(slots=True)
class ChannelRegistrar:
    """Opens channels through a channel admin and confirms acceptance."""

    admin: ChannelAdmin
    """Relay-chain administrative interface."""

    poll_interval: float = 2.0
    """Seconds between status queries."""

    max_attempts: int = 30
    """Status queries before giving up on a channel."""

    timeout: float = 120.0
    """Upper bound in seconds for one channel, open request included."""

    async def register(self, channel: ChannelSpec) -> None:
        """
        Open a channel and wait until it is accepted.

        Args:
            channel: The channel to open.

        Raises:
            ChannelRegistrationError: If the request fails, the relay chain
                rejects the channel, or acceptance is not confirmed in time.
        """
        try:
            async with asyncio.timeout(self.timeout):
                await self._open_and_confirm(channel)
        except TimeoutError as exc:
            raise ChannelRegistrationError(
                channel.sender,
                channel.recipient,
                f"not accepted within {self.timeout:.1f}s",
            ) from exc

    async def _open_and_confirm(self, channel: ChannelSpec) -> None:
        """Send the open request, then poll status until a verdict."""
        sender, recipient = channel.sender, channel.recipient

        logger.info(
            "Opening channel %s (capacity %d, max message size %d)",
            channel,
            channel.max_capacity,
            channel.max_message_size,
        )
        try:
            await self.admin.open_channel(
                sender, recipient, channel.max_capacity, channel.max_message_size
            )
        except RpcError as exc:
            raise ChannelRegistrationError(
                sender, recipient, f"open request failed: {exc.message}"
            ) from exc

        last_seen = "no status received"
        for attempt in range(1, self.max_attempts + 1):
            # A failed query is treated like a pending status: the relay
            # chain may be busy, and the attempt budget bounds the wait.
            try:
                status = await self.admin.channel_status(sender, recipient)
            except RpcError as exc:
                logger.warning("Status query for channel %s failed: %s", channel, exc)
                last_seen = f"status query failed: {exc.message}"
            else:
                if status is ChannelStatus.ACCEPTED:
                    logger.info("Channel %s accepted after %d status queries", channel, attempt)
                    return
                if status is ChannelStatus.REJECTED:
                    raise ChannelRegistrationError(
                        sender, recipient, "rejected by the relay chain"
                    )
                last_seen = f"status {status.value}"
                logger.debug(
                    "Channel %s is %s (attempt %d/%d)",
                    channel,
                    status.value,
                    attempt,
                    self.max_attempts,
                )

            if attempt < self.max_attempts:
                await asyncio.sleep(self.poll_interval)

        raise ChannelRegistrationError(
            sender,
            recipient,
            f"not accepted after {self.max_attempts} status queries ({last_seen})",
        )

    async def register_all(
        self,
        channels: Sequence[ChannelSpec],
        live_parachains: Collection[int] | None = None,
    ) -> list[ChannelOutcome]:
        """
        Register channels in declaration order and aggregate the results.

        Args:
            channels: Channels to open.
            live_parachains: Parachains that are running. Channels touching
                any other parachain fail without contacting the relay chain.
                None means every parachain is considered live.

        Returns:
            One outcome per channel, in the same order.
        """
        outcomes: list[ChannelOutcome] = []
        for channel in channels:
            error: ChannelRegistrationError | None = None

            down = [
                para_id
                for para_id in (channel.sender, channel.recipient)
                if live_parachains is not None and para_id not in live_parachains
            ]
            if down:
                error = ChannelRegistrationError(
                    channel.sender,
                    channel.recipient,
                    f"parachain {', '.join(map(str, down))} is not running",
                )
            else:
                try:
                    await self.register(channel)
                except ChannelRegistrationError as exc:
                    error = exc

            if error is None:
                metrics.channel_registrations.labels(outcome="accepted").inc()
            else:
                metrics.channel_registrations.labels(outcome="failed").inc()
                logger.warning("%s", error)

            outcomes.append(ChannelOutcome(channel=channel, error=error))

        return outcomes
