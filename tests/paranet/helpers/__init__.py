"""Fakes and builders shared by the paranet unit tests."""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from aiohttp import web

from paranet.config import LaunchConfig
from paranet.network import NetworkLauncher
from paranet.ports import PortAllocator
from paranet.process import NodeState, ProcessSupervisor
from paranet.rpc import ChannelStatus, NodeEndpoint, ReadinessProbe
from paranet.topology import TopologySpec, topology_from_dict

SLEEP_FOREVER = "import time; time.sleep(600)"
"""Script for a child process that runs until signalled."""

EXIT_AT_ONCE = "raise SystemExit(7)"
"""Script for a child process that exits immediately with code 7."""


def ignore_sigterm(marker: Path) -> str:
    """Script for a child process that only SIGKILL can stop. Touches marker once armed."""
    return (
        "import pathlib, signal, time; "
        "signal.signal(signal.SIGTERM, signal.SIG_IGN); "
        f"pathlib.Path({str(marker)!r}).touch(); "
        "time.sleep(600)"
    )


def fork_grandchild(marker: Path) -> str:
    """
    Script for a node that forks a child ignoring SIGTERM, then sleeps.

    The child writes its pid to marker once armed. The write is atomic,
    so a marker that exists always holds a complete pid.
    """
    grandchild = (
        "import os, pathlib, signal, time; "
        "signal.signal(signal.SIGTERM, signal.SIG_IGN); "
        f"marker = pathlib.Path({str(marker)!r}); "
        "staging = marker.with_name(marker.name + '.tmp'); "
        "staging.write_text(str(os.getpid())); "
        "os.replace(staging, marker); "
        "time.sleep(600)"
    )
    return (
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {grandchild!r}]); "
        "time.sleep(600)"
    )


def process_exists(pid: int) -> bool:
    """Whether pid names a process that has not exited. Zombies count as exited."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return False
    except OSError:
        # No procfs: the signal check above is all there is.
        return True
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


class FileProbe:
    """Readiness probe that succeeds once a marker file exists."""

    def __init__(self, marker: Path) -> None:
        self.marker = marker

    async def is_ready(self, endpoint: NodeEndpoint) -> bool:
        return self.marker.exists()


class FakeProbe:
    """Readiness probe that answers from a set of dead RPC ports."""

    def __init__(self, dead_ports: set[int] | None = None) -> None:
        self.dead_ports: set[int] = set(dead_ports or ())
        self.probed: list[int] = []

    async def is_ready(self, endpoint: NodeEndpoint) -> bool:
        self.probed.append(endpoint.rpc_port)
        return endpoint.rpc_port not in self.dead_ports


class FakeChannelAdmin:
    """Channel admin that records calls and answers from a verdict table."""

    def __init__(self, verdicts: dict[tuple[int, int], ChannelStatus] | None = None) -> None:
        self.verdicts = dict(verdicts or {})
        self.opened: list[tuple[int, int, int, int]] = []
        self.queried: list[tuple[int, int]] = []

    async def open_channel(
        self,
        sender: int,
        recipient: int,
        max_capacity: int,
        max_message_size: int,
    ) -> None:
        self.opened.append((sender, recipient, max_capacity, max_message_size))

    async def channel_status(self, sender: int, recipient: int) -> ChannelStatus:
        self.queried.append((sender, recipient))
        return self.verdicts.get((sender, recipient), ChannelStatus.ACCEPTED)


def python_node(script: str = SLEEP_FOREVER) -> dict[str, Any]:
    """Command fields for a node backed by a Python child process."""
    return {"command": sys.executable, "args": ["-c", script]}


def make_topology(
    relay_nodes: int = 2,
    parachains: dict[int, list[str]] | None = None,
    channels: list[tuple[int, int]] | None = None,
    overrides: dict[str, dict[str, Any]] | None = None,
) -> TopologySpec:
    """
    Build a topology whose nodes are sleeping Python processes.

    Args:
        relay_nodes: Number of relay validators, named node0, node1, ...
        parachains: Collator names by parachain id.
        channels: (sender, recipient) pairs with capacity 8 and size 1 MiB.
        overrides: Extra node fields by "chain/name" label.
    """
    overrides = overrides or {}

    def node(label: str, name: str) -> dict[str, Any]:
        return {"name": name, **python_node(), **overrides.get(f"{label}/{name}", {})}

    data: dict[str, Any] = {
        "relaychain": {
            "chain": "rococo-local",
            "nodes": [node("relay", f"node{i}") for i in range(relay_nodes)],
        },
        "parachains": [
            {"id": para_id, "collators": [node(f"para-{para_id}", name) for name in names]}
            for para_id, names in (parachains or {}).items()
        ],
        "hrmp_channels": [
            {
                "sender": sender,
                "recipient": recipient,
                "max_capacity": 8,
                "max_message_size": 1_048_576,
            }
            for sender, recipient in (channels or [])
        ],
    }
    return topology_from_dict(data)


async def wait_for_state(
    supervisor: ProcessSupervisor, state: NodeState, timeout: float = 5.0
) -> None:
    """Poll until a supervisor reaches state."""
    async with asyncio.timeout(timeout):
        while supervisor.state is not state:
            await asyncio.sleep(0.02)


Responder = Callable[[dict[str, Any]], web.Response]
"""Builds the HTTP response for one decoded JSON-RPC request."""


def rpc_result(request: dict[str, Any], result: Any) -> web.Response:
    """JSON-RPC success response."""
    return web.json_response({"jsonrpc": "2.0", "id": request["id"], "result": result})


def rpc_error(request: dict[str, Any], code: int, message: str) -> web.Response:
    """JSON-RPC error response."""
    return web.json_response(
        {"jsonrpc": "2.0", "id": request["id"], "error": {"code": code, "message": message}}
    )


def results_table(table: dict[str, Any]) -> Responder:
    """Responder answering each known method with a fixed result."""

    def respond(request: dict[str, Any]) -> web.Response:
        if request["method"] not in table:
            return rpc_error(request, -32601, "Method not found")
        return rpc_result(request, table[request["method"]])

    return respond


class RpcStubServer:
    """aiohttp servers on ephemeral ports answering JSON-RPC through a responder."""

    def __init__(self) -> None:
        self.received: list[dict[str, Any]] = []
        self._runners: list[web.AppRunner] = []

    async def serve(self, responder: Responder) -> str:
        """Start a server and return its URL."""

        async def handle(request: web.Request) -> web.Response:
            payload = await request.json()
            self.received.append(payload)
            return responder(payload)

        app = web.Application()
        app.router.add_post("/", handle)
        runner = web.AppRunner(app)
        await runner.setup()
        await web.TCPSite(runner, "127.0.0.1", 0).start()
        self._runners.append(runner)

        host, port = runner.addresses[0][:2]
        return f"http://{host}:{port}"

    async def close(self) -> None:
        """Stop every server."""
        for runner in self._runners:
            await runner.cleanup()
        self._runners.clear()


def make_launcher(
    topology: TopologySpec,
    probe: ReadinessProbe | None = None,
    admin: FakeChannelAdmin | None = None,
    **config: Any,
) -> NetworkLauncher:
    """Launcher with fast intervals, fake probe and admin, and a deterministic allocator."""
    channel_admin = admin if admin is not None else FakeChannelAdmin()
    settings: dict[str, Any] = {
        "node_ready_timeout": 5.0,
        "ready_poll_interval": 0.05,
        "grace_period": 2.0,
        "channel_poll_interval": 0.01,
        **config,
    }
    return NetworkLauncher(
        topology,
        config=LaunchConfig(**settings),
        probe=probe if probe is not None else FakeProbe(),
        channel_admin_factory=lambda _url: channel_admin,
        port_allocator=PortAllocator(base_port=42_000, is_port_free=lambda _port: True),
    )
