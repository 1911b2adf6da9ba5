"""
paranet CLI entry point.

Launch a relay chain, its parachains and their HRMP channels from a
zombienet-style topology file, keep the network running until
interrupted, then tear everything down.

Usage::

    python -m paranet network.toml
    python -m paranet network.toml --log-dir ./logs --api-port 9615
    python -m paranet network.yaml --check
    python -m paranet network.toml --once --network-timeout 600

Options:
    --base-port        First port scanned for nodes without explicit ports
    --node-timeout     Seconds each node gets to become ready
    --channel-timeout  Seconds each channel gets to be accepted
    --grace-period     Seconds between SIGTERM and SIGKILL on teardown
    --network-timeout  Upper bound on the whole launch
    --health-interval  Seconds between health probes once running
    --log-dir          Directory receiving one log file per node
    --base-dir         Directory under which each node keeps its data
    --api-port         Serve health, report and metrics on this port
    --check            Validate the topology and exit
    --once             Tear down as soon as the network is up

Exit codes:
    0  network was healthy and teardown was clean
    1  network was degraded, launch was interrupted or teardown failed
    2  topology file is invalid
    3  launch failed (ports exhausted, relay chain down, timeout)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from collections.abc import Callable
from pathlib import Path
from typing import Final

from paranet.api import ApiServer, ApiServerConfig
from paranet.config import LaunchConfig
from paranet.network import NetworkHandle, NetworkLauncher
from paranet.topology import load_topology
from paranet.types import ParanetError, ValidationError

logger = logging.getLogger(__name__)

EXIT_OK: Final = 0
"""Healthy network, clean teardown."""

EXIT_DEGRADED: Final = 1
"""Degraded network, interrupted launch or teardown failures."""

EXIT_INVALID_TOPOLOGY: Final = 2
"""The topology file was rejected."""

EXIT_FATAL: Final = 3
"""The launch failed before a usable network existed."""


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        return f"{colored_time} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the orchestrator with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def _install_signal_handlers(callback: Callable[[], None]) -> None:
    """
    Route SIGINT and SIGTERM to callback.

    Silently ignores errors if handlers cannot be installed.
    This happens in non-main threads or embedded contexts.
    """
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, callback)
    except (ValueError, RuntimeError, NotImplementedError):
        # Cannot add handlers outside main thread.
        pass


async def _report_crashes(handle: NetworkHandle) -> None:
    """Log crashes as they happen. The network keeps running."""
    while True:
        crash = await handle.crash_events.get()
        logger.warning("Network degraded: %s", crash)


async def run_network(
    launcher: NetworkLauncher,
    *,
    api_config: ApiServerConfig | None = None,
    shutdown: asyncio.Event | None = None,
    once: bool = False,
    install_signal_handlers: bool = True,
) -> int:
    """
    Launch a network, keep it up until shutdown, then tear it down.

    Args:
        launcher: Launcher for the network.
        api_config: Status server configuration. None disables the server.
        shutdown: Event that ends the run. Created when None.
        once: Tear down as soon as the launch completes.
        install_signal_handlers: Whether SIGINT/SIGTERM request shutdown.

    Returns:
        Process exit code.
    """
    shutdown = shutdown if shutdown is not None else asyncio.Event()
    launch_task = asyncio.create_task(launcher.launch(), name="paranet-launch")

    def request_shutdown() -> None:
        logger.info("Shutdown requested")
        shutdown.set()
        if not launch_task.done():
            launch_task.cancel()

    if install_signal_handlers:
        _install_signal_handlers(request_shutdown)

    server = ApiServer(api_config, lambda: launcher.handle) if api_config is not None else None
    if server is not None:
        await server.start()

    try:
        stop_waiter = asyncio.create_task(shutdown.wait(), name="paranet-shutdown")
        await asyncio.wait({launch_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        if not launch_task.done():
            launch_task.cancel()
        stop_waiter.cancel()

        try:
            handle = await launch_task
        except asyncio.CancelledError:
            if not shutdown.is_set():
                raise
            logger.warning("Launch interrupted; every started node was stopped")
            return EXIT_DEGRADED
        except ParanetError as exc:
            logger.error("Launch failed: %s", exc)
            return EXIT_FATAL

        handle.log_summary()
        crash_reporter = asyncio.create_task(_report_crashes(handle), name="paranet-crashes")
        try:
            if not once:
                logger.info("Network is up; press Ctrl+C to tear it down")
                await shutdown.wait()
        finally:
            crash_reporter.cancel()
            healthy = handle.is_healthy
            teardown = await launcher.shutdown()

        if healthy and teardown.clean:
            return EXIT_OK
        return EXIT_DEGRADED
    finally:
        if server is not None:
            await server.stop()


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser for the paranet CLI."""
    parser = argparse.ArgumentParser(
        prog="paranet",
        description="Ephemeral relay-chain test network orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "topology",
        type=Path,
        help="Path to the topology file (.toml, .yaml or .yml)",
    )
    parser.add_argument(
        "--base-port",
        type=int,
        default=None,
        help="First port scanned for nodes without explicit ports",
    )
    parser.add_argument(
        "--node-timeout",
        type=float,
        default=None,
        help="Seconds each node gets to become ready",
    )
    parser.add_argument(
        "--channel-timeout",
        type=float,
        default=None,
        help="Seconds each channel gets to be accepted",
    )
    parser.add_argument(
        "--grace-period",
        type=float,
        default=None,
        help="Seconds between SIGTERM and SIGKILL on teardown",
    )
    parser.add_argument(
        "--network-timeout",
        type=float,
        default=None,
        help="Upper bound in seconds on the whole launch",
    )
    parser.add_argument(
        "--health-interval",
        type=float,
        default=None,
        help="Seconds between health probes once running (default: disabled)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory receiving one log file per node",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Directory under which each node keeps its data",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Serve health, network report and metrics on this port",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate the topology and exit",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Tear down as soon as the network is up",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        topology = load_topology(args.topology)
    except (ValidationError, OSError) as exc:
        logger.error("Cannot load topology: %s", exc)
        return EXIT_INVALID_TOPOLOGY

    if args.check:
        logger.info("Topology %s is valid", args.topology)
        return EXIT_OK

    config = LaunchConfig.from_settings(
        topology.settings,
        base_port=args.base_port,
        node_ready_timeout=args.node_timeout,
        channel_timeout=args.channel_timeout,
        grace_period=args.grace_period,
        network_timeout=args.network_timeout,
        health_interval=args.health_interval,
        log_dir=args.log_dir,
        base_dir=args.base_dir,
    )
    api_config = ApiServerConfig(port=args.api_port) if args.api_port is not None else None

    try:
        return asyncio.run(
            run_network(NetworkLauncher(topology, config), api_config=api_config, once=args.once)
        )
    except KeyboardInterrupt:
        # Only reached if the interrupt lands outside the launch and run loop.
        logger.info("Interrupted")
        return EXIT_DEGRADED


if __name__ == "__main__":
    raise SystemExit(main())
