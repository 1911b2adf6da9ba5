"""
Supervision of a single node process.

One supervisor owns one OS process for its whole life:
spawn, readiness wait, crash and health monitoring, and termination.
Supervisors never coordinate with each other; the launcher does.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from paranet import metrics
from paranet.config import HOST
from paranet.ports import NodePorts
from paranet.rpc import NodeEndpoint, ReadinessProbe
from paranet.topology import NodeKey, NodeSpec
from paranet.types import InvalidStateTransition, NodeStartupError, ProcessCrashError

from .states import NodeState

logger = logging.getLogger(__name__)

CrashCallback = Callable[[ProcessCrashError], None]
"""Receives crash notifications. Called from the supervisor's monitor task."""


def _signal_group(pgid: int, sig: signal.Signals) -> bool:
    """
    Signal every process in a node's process group.

    Nodes run in their own session, so the group id is the node's pid.

    Returns:
        False if no process is left in the group.
    """
    try:
        os.killpg(pgid, sig)
    except ProcessLookupError:
        return False
    return True


@dataclass(slots=True)
class RuntimeNode:
    """
    A declared node together with everything resolved at runtime.

    Mutated only by the supervisor that owns it.
    """

    key: NodeKey
    """Identity of the node."""

    spec: NodeSpec
    """Declared node."""

    ports: NodePorts
    """Resolved ports."""

    argv: list[str]
    """Full command line, command first."""

    state: NodeState = NodeState.CREATED
    """Current lifecycle state."""

    pid: int | None = None
    """OS process id once spawned."""

    exit_code: int | None = None
    """Return code once the process has exited."""

    failure: str | None = None
    """Why the node failed to start, crashed or is unhealthy."""

    killed: bool = False
    """Whether stopping needed SIGKILL."""

    @property
    def label(self) -> str:
        """Human-readable identity, e.g. `para-1000/alice`."""
        return str(self.key)


@dataclass(slots=True)
class ProcessSupervisor:
    """
    Lifecycle owner of one node process.

    Usage::

        supervisor = ProcessSupervisor(runtime, probe)
        await supervisor.start()
        if await supervisor.await_ready(timeout=60.0):
            ...
        await supervisor.stop(grace_period=10.0)
    """

    runtime: RuntimeNode
    """The supervised node."""

    probe: ReadinessProbe
    """Liveness check used for readiness and health polling."""

    host: str = HOST
    """Address the node is probed on."""

    poll_interval: float = 1.0
    """Seconds between readiness probes."""

    health_interval: float = 0.0
    """Seconds between health probes once running. Zero disables them."""

    unhealthy_threshold: int = 3
    """Consecutive failed health probes before UNHEALTHY."""

    log_dir: Path | None = None
    """Directory for the node's output. None discards it."""

    on_crash: CrashCallback | None = None
    """Notified when the process exits while running."""

    _process: asyncio.subprocess.Process | None = field(default=None, init=False, repr=False)
    """The spawned process."""

    _spawned_at: float = field(default=0.0, init=False, repr=False)
    """Monotonic time of the spawn."""

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    """Background task waiting for the process to exit."""

    _health_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    """Background task probing health while running."""

    _log_file: IO[bytes] | None = field(default=None, init=False, repr=False)
    """Open log file receiving stdout and stderr."""

    _stop_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    """Serializes concurrent stop requests."""

    @property
    def key(self) -> NodeKey:
        """Identity of the supervised node."""
        return self.runtime.key

    @property
    def label(self) -> str:
        """Human-readable identity."""
        return self.runtime.label

    @property
    def state(self) -> NodeState:
        """Current lifecycle state."""
        return self.runtime.state

    @property
    def endpoint(self) -> NodeEndpoint:
        """RPC endpoint of the node."""
        return NodeEndpoint.from_ports(self.runtime.ports, self.host)

    @property
    def is_alive(self) -> bool:
        """Whether the OS process exists and has not exited."""
        return self._process is not None and self._process.returncode is None

    def _transition(self, target: NodeState) -> None:
        """
        Move to target, enforcing the state machine.

        Raises:
            InvalidStateTransition: If the transition is not allowed.
        """
        current = self.runtime.state
        if not current.can_transition_to(target):
            raise InvalidStateTransition(self.label, current.name, target.name)

        logger.debug("%s: %s -> %s", self.label, current.name, target.name)
        self.runtime.state = target

        if current.is_live != target.is_live:
            gauge = metrics.nodes_running.labels(chain=self.key.chain)
            if target.is_live:
                gauge.inc()
            else:
                gauge.dec()

    async def start(self) -> None:
        """
        Spawn the node process.

        The process gets its own session so that a terminal interrupt
        reaches paranet only; children are stopped through teardown.

        Raises:
            InvalidStateTransition: If the node was already started.
            NodeStartupError: If the executable cannot be spawned.
        """
        self._transition(NodeState.STARTING)

        stdout: int | IO[bytes] = asyncio.subprocess.DEVNULL
        stderr: int = asyncio.subprocess.DEVNULL
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_path = self.log_dir / f"{self.key.chain}-{self.key.node}.log"
            self._log_file = log_path.open("ab")
            stdout = self._log_file
            stderr = asyncio.subprocess.STDOUT

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.runtime.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
                start_new_session=True,
            )
        except OSError as exc:
            self._close_log()
            self._fail_start(f"spawn failed: {exc}")
            raise NodeStartupError(self.label, f"spawn failed: {exc}") from exc

        self._spawned_at = time.monotonic()
        self.runtime.pid = self._process.pid
        logger.info(
            "Spawned %s (pid %d): %s", self.label, self._process.pid, shlex.join(self.runtime.argv)
        )

    async def await_ready(self, timeout: float) -> bool:
        """
        Wait until the readiness probe succeeds.

        Suspends only the caller; other supervisors keep progressing.

        Args:
            timeout: Maximum wait in seconds.

        Returns:
            True once RUNNING. False if the node timed out, exited first,
            or was never started.
        """
        if self.runtime.state is not NodeState.STARTING:
            return self.runtime.state.is_live

        process = self._process
        assert process is not None, "STARTING implies a spawned process"
        endpoint = self.endpoint

        try:
            async with asyncio.timeout(timeout):
                while True:
                    # Teardown may have taken over while we slept.
                    if self.runtime.state is not NodeState.STARTING:
                        return False

                    if process.returncode is not None:
                        self.runtime.exit_code = process.returncode
                        self._fail_start(
                            f"exited with code {process.returncode} before becoming ready"
                        )
                        return False

                    if await self.probe.is_ready(endpoint):
                        break

                    await asyncio.sleep(self.poll_interval)
        except TimeoutError:
            if self.runtime.state is NodeState.STARTING:
                self._fail_start(f"not ready within {timeout:.1f}s")
            return False

        if self.runtime.state is not NodeState.STARTING:
            return False

        self._transition(NodeState.READY)
        self._transition(NodeState.RUNNING)

        elapsed = time.monotonic() - self._spawned_at
        metrics.node_ready_time.observe(elapsed)
        metrics.node_starts.labels(chain=self.key.chain, outcome="ready").inc()
        logger.info(
            "%s ready after %.1fs (rpc %d, ws %d)",
            self.label,
            elapsed,
            self.runtime.ports.rpc,
            self.runtime.ports.ws,
        )

        self._watch_task = asyncio.create_task(self._watch_exit(), name=f"watch-{self.label}")
        if self.health_interval > 0:
            self._health_task = asyncio.create_task(
                self._poll_health(), name=f"health-{self.label}"
            )
        return True

    def _fail_start(self, reason: str) -> None:
        """Record a startup failure."""
        self.runtime.failure = reason
        self._transition(NodeState.FAILED_TO_START)
        metrics.node_starts.labels(chain=self.key.chain, outcome="failed").inc()
        logger.warning("%s failed to start: %s", self.label, reason)

    async def _watch_exit(self) -> None:
        """Turn an unrequested exit into CRASHED and notify the owner."""
        process = self._process
        assert process is not None
        returncode = await process.wait()

        # Exits during STOPPING are requested, not crashes.
        if not self.runtime.state.is_live:
            return

        self.runtime.exit_code = returncode
        self.runtime.failure = f"exited unexpectedly with code {returncode}"
        self._transition(NodeState.CRASHED)
        metrics.node_crashes.labels(chain=self.key.chain).inc()

        error = ProcessCrashError(self.label, returncode)
        logger.error("%s", error)
        if self.on_crash is not None:
            self.on_crash(error)

    async def _poll_health(self) -> None:
        """Flip between RUNNING and UNHEALTHY based on periodic probes."""
        consecutive_failures = 0
        while True:
            await asyncio.sleep(self.health_interval)
            if not self.runtime.state.is_live:
                return

            if await self.probe.is_ready(self.endpoint):
                consecutive_failures = 0
                if self.runtime.state is NodeState.UNHEALTHY:
                    self.runtime.failure = None
                    self._transition(NodeState.RUNNING)
                    logger.info("%s recovered", self.label)
                continue

            consecutive_failures += 1
            if (
                consecutive_failures >= self.unhealthy_threshold
                and self.runtime.state is NodeState.RUNNING
            ):
                self.runtime.failure = f"{consecutive_failures} consecutive failed health probes"
                self._transition(NodeState.UNHEALTHY)
                logger.warning("%s unhealthy: %s", self.label, self.runtime.failure)

    async def stop(self, grace_period: float = 10.0) -> None:
        """
        Terminate the node's whole process group.

        SIGTERM first, SIGKILL after grace_period. Whatever is left of the
        group once the node has exited is killed, so forked children never
        outlive the node.

        Idempotent: stopping a STOPPED node does nothing.

        Args:
            grace_period: Seconds to wait for a graceful exit.

        Raises:
            OSError: If the process cannot be signalled. The node stays
                STOPPING so that a later call can retry.
        """
        async with self._stop_lock:
            if self.runtime.state is NodeState.STOPPED:
                return

            if self.runtime.state is NodeState.CREATED:
                self._transition(NodeState.STOPPED)
                return

            # A previous attempt may have failed half-way and left us STOPPING.
            if self.runtime.state is not NodeState.STOPPING:
                self._transition(NodeState.STOPPING)

            await self._cancel_monitors()

            process = self._process
            if process is not None and process.returncode is None:
                logger.info("Stopping %s (pid %d)", self.label, process.pid)
                if _signal_group(process.pid, signal.SIGTERM):
                    try:
                        await asyncio.wait_for(process.wait(), timeout=grace_period)
                    except TimeoutError:
                        logger.warning(
                            "%s did not exit within %.1fs, killing", self.label, grace_period
                        )
                        _signal_group(process.pid, signal.SIGKILL)
                        self.runtime.killed = True
                await process.wait()

            # Children that outlived the node, or a crashed node, would be orphans.
            if process is not None and _signal_group(process.pid, signal.SIGKILL):
                logger.debug("Killed leftover processes of %s", self.label)

            if process is not None and self.runtime.exit_code is None:
                self.runtime.exit_code = process.returncode

            self._close_log()
            self._transition(NodeState.STOPPED)
            logger.info("%s stopped", self.label)

    async def _cancel_monitors(self) -> None:
        """Cancel crash and health monitors, except the calling task."""
        current = asyncio.current_task()
        for task in (self._watch_task, self._health_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._watch_task = None
        self._health_task = None

    def _close_log(self) -> None:
        """Close the node's log file if one is open."""
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
