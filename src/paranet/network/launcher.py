"""
Network launch sequencing.

The relay chain comes up first and completely. Parachains follow one at a
time, each with its collators started concurrently. Channels are opened
last. Whatever goes wrong, a launch never leaves orphaned processes:
on a fatal error or cancellation everything started is torn down before
the error propagates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from paranet.config import HOST, LaunchConfig
from paranet.hrmp import ChannelRegistrar
from paranet.ports import PortAllocator
from paranet.process import ProcessSupervisor, RuntimeNode, build_node_command, relay_rpc_url
from paranet.rpc import ChannelAdmin, ReadinessProbe, RpcChannelAdmin, RpcReadinessProbe
from paranet.topology import NodeKey, NodeSpec, ParachainSpec, RelayChainSpec, TopologySpec
from paranet.types import (
    CollatorStartupError,
    LaunchTimeoutError,
    NodeStartupError,
    RelayChainStartupError,
)

from .handle import NetworkHandle
from .teardown import TeardownController, TeardownReport

logger = logging.getLogger(__name__)

ChannelAdminFactory = Callable[[str], ChannelAdmin]
"""Builds a channel admin from the relay chain's HTTP RPC URL."""


@dataclass(slots=True)
class NetworkLauncher:
    """
    Brings a topology up and hands back a NetworkHandle.

    Usage::

        launcher = NetworkLauncher(topology, LaunchConfig())
        handle = await launcher.launch()
        try:
            ...
        finally:
            await launcher.shutdown()
    """

    topology: TopologySpec
    """Validated topology to launch."""

    config: LaunchConfig = field(default_factory=LaunchConfig)
    """Timeouts, intervals and locations."""

    probe: ReadinessProbe = field(default_factory=RpcReadinessProbe)
    """Readiness and health probe shared by all supervisors."""

    channel_admin_factory: ChannelAdminFactory = RpcChannelAdmin.from_url
    """Builds the admin used to open channels."""

    port_allocator: PortAllocator | None = None
    """Allocator to use. None builds one from the configuration."""

    host: str = HOST
    """Address nodes are reached on."""

    handle: NetworkHandle | None = field(default=None, init=False)
    """The network being launched, available as soon as ports are resolved."""

    async def launch(self) -> NetworkHandle:
        """
        Start the relay chain, then parachains, then open channels.

        Returns:
            Handle on the running, possibly degraded, network.

        Raises:
            PortExhaustionError: If ports cannot be resolved. Nothing was started.
            RelayChainStartupError: If any relay node did not become ready.
            LaunchTimeoutError: If the network timeout elapsed.
        """
        timeout = self.config.network_timeout
        if timeout is None:
            return await self._launch()

        try:
            async with asyncio.timeout(timeout):
                return await self._launch()
        except TimeoutError as exc:
            raise LaunchTimeoutError(timeout) from exc

    async def _launch(self) -> NetworkHandle:
        allocator = self.port_allocator or PortAllocator(
            base_port=self.config.base_port,
            search_window=self.config.search_window,
        )
        ports = allocator.allocate(self.topology)

        handle = NetworkHandle(topology=self.topology, ports=ports)
        self.handle = handle

        try:
            await self._start_relay(handle)
            for para in self.topology.parachains:
                await self._start_parachain(handle, para)
            await self._register_channels(handle)
        except BaseException as exc:
            logger.error("Launch aborted (%s), tearing down", type(exc).__name__)
            await self._teardown(handle)
            raise

        live = sum(1 for supervisor in handle.supervisors if supervisor.state.is_live)
        logger.info(
            "Network launched: %d nodes running, %d/%d channels accepted",
            live,
            sum(1 for outcome in handle.channels if outcome.accepted),
            len(handle.channels),
        )
        return handle

    async def shutdown(self) -> TeardownReport:
        """
        Tear down the launched network.

        Raises:
            RuntimeError: If nothing was launched.
        """
        if self.handle is None:
            raise RuntimeError("Network was never launched")
        return await self._teardown(self.handle)

    async def _teardown(self, handle: NetworkHandle) -> TeardownReport:
        return await TeardownController(self.config.grace_period).teardown(handle)

    def _supervisor(
        self,
        handle: NetworkHandle,
        chain: RelayChainSpec | ParachainSpec,
        node: NodeSpec,
        relay_endpoint: str | None = None,
    ) -> ProcessSupervisor:
        """Build the supervisor of one node."""
        key = NodeKey(chain.label, node.name)
        ports = handle.ports[key]
        argv = build_node_command(
            chain,
            node,
            ports,
            relay_endpoint=relay_endpoint,
            base_dir=self.config.base_dir,
        )
        return ProcessSupervisor(
            runtime=RuntimeNode(key=key, spec=node, ports=ports, argv=argv),
            probe=self.probe,
            host=self.host,
            poll_interval=self.config.ready_poll_interval,
            health_interval=self.config.health_interval,
            unhealthy_threshold=self.config.unhealthy_threshold,
            log_dir=self.config.log_dir,
            on_crash=handle.record_crash,
        )

    async def _start_group(self, supervisors: list[ProcessSupervisor]) -> dict[str, str]:
        """
        Start a group concurrently and wait for all of it with one deadline.

        Returns:
            Failure reason by node label. Empty when every node is running.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.node_ready_timeout
        failures: dict[str, str] = {}

        async def bring_up(supervisor: ProcessSupervisor) -> None:
            try:
                await supervisor.start()
            except NodeStartupError as exc:
                failures[supervisor.label] = exc.reason
                return
            remaining = max(deadline - loop.time(), 0.0)
            if not await supervisor.await_ready(remaining):
                failures[supervisor.label] = supervisor.runtime.failure or "not ready"

        async with asyncio.TaskGroup() as group:
            for supervisor in supervisors:
                group.create_task(bring_up(supervisor), name=f"start-{supervisor.label}")

        return failures

    async def _start_relay(self, handle: NetworkHandle) -> None:
        """
        Start every relay node and wait until all are running.

        Raises:
            RelayChainStartupError: If any relay node failed.
        """
        relay = self.topology.relaychain
        handle.relay = [self._supervisor(handle, relay, node) for node in relay.nodes]

        logger.info("Starting relay chain '%s' with %d nodes", relay.chain, len(relay.nodes))
        failures = await self._start_group(handle.relay)
        if failures:
            raise RelayChainStartupError(failures)
        logger.info("Relay chain '%s' is running", relay.chain)

    async def _start_parachain(self, handle: NetworkHandle, para: ParachainSpec) -> None:
        """Start one parachain's collators. A failure degrades only this parachain."""
        relay_endpoint = (
            relay_rpc_url(handle.relay[0].runtime.ports, self.host) if para.cumulus_based else None
        )
        collators = [
            self._supervisor(handle, para, node, relay_endpoint) for node in para.collators
        ]
        handle.parachains[para.id] = collators

        logger.info("Starting parachain %d with %d collators", para.id, len(collators))
        failures = await self._start_group(collators)
        if not failures:
            logger.info("Parachain %d is running", para.id)
            return

        error = CollatorStartupError(para.id, failures)
        handle.parachain_failures[para.id] = error
        logger.error("%s; continuing without it", error)

        # Collators that did come up are useless without their siblings.
        results = await asyncio.gather(
            *(collator.stop(self.config.grace_period) for collator in collators),
            return_exceptions=True,
        )
        for collator, result in zip(collators, results, strict=True):
            if isinstance(result, Exception):
                logger.error("Could not stop %s: %s", collator.label, result)
            elif isinstance(result, BaseException):
                raise result

    async def _register_channels(self, handle: NetworkHandle) -> None:
        """Open every declared channel through the first relay node."""
        channels = self.topology.hrmp_channels
        if not channels:
            return

        registrar = ChannelRegistrar(
            admin=self.channel_admin_factory(handle.relay_endpoint.rpc_url),
            poll_interval=self.config.channel_poll_interval,
            max_attempts=self.config.channel_max_attempts,
            timeout=self.config.channel_timeout,
        )
        logger.info("Registering %d HRMP channels", len(channels))
        handle.channels = await registrar.register_all(channels, handle.live_parachains)
