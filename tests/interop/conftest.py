"""
Shared pytest fixtures for interop tests.

Provides a launcher factory whose networks are always torn down.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable

import pytest

from paranet.config import LaunchConfig
from paranet.network import NetworkLauncher
from paranet.topology import TopologySpec

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

LauncherFactory = Callable[[TopologySpec], NetworkLauncher]


@pytest.fixture
async def launcher_factory() -> AsyncGenerator[LauncherFactory, None]:
    """
    Build launchers with real probes, real channel admins and real ports.

    Every launched network is shut down when the test ends.
    """
    launchers: list[NetworkLauncher] = []

    def build(topology: TopologySpec) -> NetworkLauncher:
        config = LaunchConfig.from_settings(
            topology.settings,
            node_ready_timeout=20.0,
            ready_poll_interval=0.2,
            grace_period=5.0,
            channel_poll_interval=0.2,
            channel_max_attempts=25,
            network_timeout=60.0,
        )
        launcher = NetworkLauncher(topology, config=config)
        launchers.append(launcher)
        return launcher

    try:
        yield build
    finally:
        for launcher in launchers:
            if launcher.handle is not None and not launcher.handle.torn_down:
                logger.warning("Tearing down a network the test left running")
                await launcher.shutdown()
