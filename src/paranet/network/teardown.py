"""
Network teardown.

Stops collators before the relay chain they depend on, in reverse start
order. A node that cannot be stopped never keeps the others running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from paranet.process import ProcessSupervisor

from .handle import NetworkHandle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TeardownReport:
    """What teardown managed to stop."""

    stopped: list[str] = field(default_factory=list)
    """Labels of nodes that reached STOPPED."""

    forced: list[str] = field(default_factory=list)
    """Labels of nodes that needed SIGKILL."""

    failures: dict[str, str] = field(default_factory=dict)
    """Stop error by node label."""

    @property
    def clean(self) -> bool:
        """Whether every node stopped without error."""
        return not self.failures


@dataclass(slots=True)
class TeardownController:
    """Stops every process of a network."""

    grace_period: float = 10.0
    """Seconds each node gets to exit after SIGTERM."""

    async def teardown(self, handle: NetworkHandle) -> TeardownReport:
        """
        Stop every node of the network.

        Parachains are stopped in reverse start order, the collators of
        one parachain concurrently, and the relay nodes last.
        Safe to call more than once.

        Args:
            handle: The network to stop.

        Returns:
            Stopped nodes and per-node stop errors.
        """
        groups = [list(collators) for collators in reversed(handle.parachains.values())]
        groups.append(list(handle.relay))

        report = TeardownReport()
        for group in groups:
            await self._stop_group(group, report)

        handle.torn_down = True
        if report.clean:
            logger.info("Teardown complete: %d nodes stopped", len(report.stopped))
        else:
            logger.error(
                "Teardown finished with %d failures: %s",
                len(report.failures),
                ", ".join(report.failures),
            )
        return report

    async def _stop_group(self, group: list[ProcessSupervisor], report: TeardownReport) -> None:
        """Stop a group concurrently and record each result."""
        results = await asyncio.gather(
            *(supervisor.stop(self.grace_period) for supervisor in group),
            return_exceptions=True,
        )
        for supervisor, result in zip(group, results, strict=True):
            if isinstance(result, Exception):
                report.failures[supervisor.label] = f"{type(result).__name__}: {result}"
                logger.error("Could not stop %s: %s", supervisor.label, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                report.stopped.append(supervisor.label)
                if supervisor.runtime.killed:
                    report.forced.append(supervisor.label)
