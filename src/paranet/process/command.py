"""
Command-line construction for node processes.

Node binaries are opaque: paranet only knows the flags it injects.
Declared arguments come first so that the injected flags, which carry
resolved ports, take precedence in parsers where the last flag wins.
"""

from __future__ import annotations

from pathlib import Path

from paranet.config import HOST, url_host
from paranet.ports import NodePorts
from paranet.topology import NodeSpec, ParachainSpec, RelayChainSpec


def relay_rpc_url(ports: NodePorts, host: str = HOST) -> str:
    """WebSocket RPC URL collators use to follow the relay chain."""
    return f"ws://{url_host(host)}:{ports.ws}"


def build_node_command(
    chain: RelayChainSpec | ParachainSpec,
    node: NodeSpec,
    ports: NodePorts,
    *,
    relay_endpoint: str | None = None,
    base_dir: Path | None = None,
) -> list[str]:
    """
    Build the argv of a node process.

    Layout::

        <command> <default args> <node args>
            --name <name> [--chain <profile>] [--base-path <dir>]
            --port <p2p> --rpc-port <rpc> --ws-port <ws>
            [--validator | --collator]
            [--relay-chain-rpc-url <url>]

    Args:
        chain: Chain the node belongs to.
        node: Declared node.
        ports: Resolved ports of the node.
        relay_endpoint: Relay-chain URL for cumulus-based collators.
        base_dir: Root directory for node data; each node gets
            `<base_dir>/<chain label>/<node name>`.

    Returns:
        The argument vector, command first.
    """
    argv = [chain.command_for(node), *chain.args_for(node), "--name", node.name]

    if chain.profile is not None:
        argv += ["--chain", chain.profile]

    if base_dir is not None:
        argv += ["--base-path", str(base_dir / chain.label / node.name)]

    argv += [
        "--port",
        str(ports.p2p),
        "--rpc-port",
        str(ports.rpc),
        "--ws-port",
        str(ports.ws),
    ]

    # Relay validators author relay blocks; parachain "validators" collate.
    if node.validator:
        argv.append("--collator" if isinstance(chain, ParachainSpec) else "--validator")

    if isinstance(chain, ParachainSpec) and chain.cumulus_based and relay_endpoint is not None:
        argv += ["--relay-chain-rpc-url", relay_endpoint]

    return argv
