"""
Global configuration for paranet.

Environment-specific settings live at module level.
Per-launch tunables live in `LaunchConfig`.
"""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from paranet.topology import NetworkSettings

HOST = os.environ.get("PARANET_HOST", "127.0.0.1")
"""Address every node is reached on. Defaults to loopback."""

try:
    ipaddress.ip_address(HOST)
except ValueError as exc:
    raise ValueError(
        f"Invalid PARANET_HOST environment variable: '{HOST}'. Expected an IP address."
    ) from exc


def url_host(host: str) -> str:
    """Host as it appears in a URL. IPv6 literals are bracketed."""
    return f"[{host}]" if ":" in host else host


DEFAULT_BASE_PORT: Final = 30_000
"""First port scanned when a node does not declare one."""

DEFAULT_SEARCH_WINDOW: Final = 2_000
"""How many ports above the base port are scanned before giving up."""

MAX_PORT: Final = 65_535
"""Highest valid TCP/UDP port."""


@dataclass(frozen=True, slots=True)
class LaunchConfig:
    """Timeouts, intervals and locations for one network launch."""

    base_port: int = DEFAULT_BASE_PORT
    """First port scanned for nodes without explicit ports."""

    search_window: int = DEFAULT_SEARCH_WINDOW
    """Size of the port scan window."""

    node_ready_timeout: float = 120.0
    """Seconds each node (and each relay group) gets to become ready."""

    ready_poll_interval: float = 1.0
    """Seconds between readiness probes while starting."""

    health_interval: float = 0.0
    """Seconds between health probes while running. Zero disables health polling."""

    unhealthy_threshold: int = 3
    """Consecutive failed health probes before a node is marked UNHEALTHY."""

    grace_period: float = 10.0
    """Seconds a node gets to exit after SIGTERM before SIGKILL."""

    channel_poll_interval: float = 2.0
    """Seconds between channel status queries."""

    channel_max_attempts: int = 30
    """Status queries per channel before giving up."""

    channel_timeout: float = 120.0
    """Upper bound in seconds on registering a single channel."""

    network_timeout: float | None = None
    """Upper bound in seconds on the whole launch. None means unbounded."""

    log_dir: Path | None = None
    """Directory receiving one log file per node. None discards output."""

    base_dir: Path | None = None
    """Directory under which each node gets a `--base-path`. None lets nodes choose."""

    @classmethod
    def from_settings(
        cls,
        settings: NetworkSettings | None = None,
        **overrides: Any,
    ) -> LaunchConfig:
        """
        Build a configuration from topology settings and explicit overrides.

        Overrides win over settings. Overrides set to None are ignored,
        so unset command-line flags never erase a topology value.

        Raises:
            TypeError: If an override names an unknown field.
        """
        config = cls()
        if settings is not None:
            from_topology: dict[str, Any] = {}
            if settings.timeout is not None:
                from_topology["network_timeout"] = settings.timeout
            if settings.node_spawn_timeout is not None:
                from_topology["node_ready_timeout"] = settings.node_spawn_timeout
            if settings.base_port is not None:
                from_topology["base_port"] = settings.base_port
            config = replace(config, **from_topology)

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown launch options: {sorted(unknown)}")

        explicit = {name: value for name, value in overrides.items() if value is not None}
        return replace(config, **explicit)
