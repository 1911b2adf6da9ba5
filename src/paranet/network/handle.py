"""
Handle on a launched network.

The handle is the single place where runtime state is collected:
supervisors, parachain failures, channel outcomes and crashes.
Teardown and the status server only read it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from paranet.hrmp import ChannelOutcome
from paranet.ports import PortAssignment
from paranet.process import NodeState, ProcessSupervisor
from paranet.rpc import NodeEndpoint
from paranet.topology import NodeKey, TopologySpec
from paranet.types import CollatorStartupError, ProcessCrashError

from .report import ChannelReport, NetworkReport, NodeReport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NetworkHandle:
    """Everything known about a launched network."""

    topology: TopologySpec
    """The validated topology."""

    ports: PortAssignment
    """Resolved ports of every node."""

    relay: list[ProcessSupervisor] = field(default_factory=list)
    """Relay-chain supervisors, in declaration order."""

    parachains: dict[int, list[ProcessSupervisor]] = field(default_factory=dict)
    """Collator supervisors by parachain, in start order."""

    parachain_failures: dict[int, CollatorStartupError] = field(default_factory=dict)
    """Parachains that did not come up."""

    channels: list[ChannelOutcome] = field(default_factory=list)
    """Channel outcomes, in declaration order."""

    crashes: list[ProcessCrashError] = field(default_factory=list)
    """Every crash observed after startup."""

    crash_events: asyncio.Queue[ProcessCrashError] = field(default_factory=asyncio.Queue)
    """Crashes as they happen, for consumers that want to react."""

    torn_down: bool = False
    """Whether teardown has run at least once."""

    def record_crash(self, error: ProcessCrashError) -> None:
        """Crash callback installed on every supervisor."""
        self.crashes.append(error)
        self.crash_events.put_nowait(error)

    @property
    def supervisors(self) -> Iterator[ProcessSupervisor]:
        """Every supervisor, relay first, then parachains in start order."""
        yield from self.relay
        for collators in self.parachains.values():
            yield from collators

    def supervisor(self, key: NodeKey) -> ProcessSupervisor:
        """
        Look up the supervisor of a node.

        Raises:
            KeyError: If the node was never started.
        """
        for supervisor in self.supervisors:
            if supervisor.key == key:
                return supervisor
        raise KeyError(str(key))

    @property
    def relay_endpoint(self) -> NodeEndpoint:
        """Endpoint of the first relay node, used for collators and channel admin."""
        if not self.relay:
            raise LookupError("No relay node has been started")
        return self.relay[0].endpoint

    @property
    def live_parachains(self) -> list[int]:
        """Parachains whose collators all came up."""
        return [para_id for para_id in self.parachains if para_id not in self.parachain_failures]

    def failures(self) -> list[str]:
        """Every failure observed so far, one line each."""
        lines = [str(error) for error in self.parachain_failures.values()]
        lines += [str(outcome.error) for outcome in self.channels if outcome.error is not None]
        lines += [str(crash) for crash in self.crashes]
        lines += [
            f"{supervisor.label} unhealthy: {supervisor.runtime.failure}"
            for supervisor in self.supervisors
            if supervisor.state is NodeState.UNHEALTHY
        ]
        return lines

    @property
    def is_healthy(self) -> bool:
        """True when nothing has failed."""
        return not self.failures()

    def report(self) -> NetworkReport:
        """Snapshot the current state of the network."""
        nodes = [
            NodeReport(
                chain=supervisor.key.chain,
                name=supervisor.key.node,
                state=supervisor.state.name,
                pid=supervisor.runtime.pid,
                rpc_port=supervisor.runtime.ports.rpc,
                ws_port=supervisor.runtime.ports.ws,
                p2p_port=supervisor.runtime.ports.p2p,
                exit_code=supervisor.runtime.exit_code,
                failure=supervisor.runtime.failure,
            )
            for supervisor in self.supervisors
        ]
        channels = [
            ChannelReport(
                sender=outcome.channel.sender,
                recipient=outcome.channel.recipient,
                max_capacity=outcome.channel.max_capacity,
                max_message_size=outcome.channel.max_message_size,
                accepted=outcome.accepted,
                error=outcome.error.reason if outcome.error is not None else None,
            )
            for outcome in self.channels
        ]
        failures = self.failures()
        return NetworkReport(
            relay_chain=self.topology.relaychain.chain,
            healthy=not failures,
            nodes=nodes,
            channels=channels,
            failed_parachains=sorted(self.parachain_failures),
            failures=failures,
        )

    def log_summary(self) -> None:
        """Log one line per node and channel, then every failure."""
        report = self.report()
        for node in report.nodes:
            logger.info(
                "%s/%s %s rpc=%d ws=%d p2p=%d",
                node.chain,
                node.name,
                node.state,
                node.rpc_port,
                node.ws_port,
                node.p2p_port,
            )
        for channel in report.channels:
            logger.info(
                "channel %d -> %d %s",
                channel.sender,
                channel.recipient,
                "accepted" if channel.accepted else f"failed ({channel.error})",
            )
        for failure in report.failures:
            logger.warning("%s", failure)
