"""Tests for node command-line construction."""

from __future__ import annotations

from pathlib import Path

from paranet.ports import NodePorts
from paranet.process import build_node_command, relay_rpc_url
from paranet.topology import topology_from_dict

TOPOLOGY = topology_from_dict(
    {
        "relaychain": {
            "chain": "rococo-local",
            "default_command": "polkadot",
            "default_args": ["-lparachain=debug"],
            "nodes": [{"name": "alice"}, {"name": "bob", "validator": False}],
        },
        "parachains": [
            {
                "id": 1000,
                "chain": "asset-hub-rococo-local",
                "collators": [
                    {"name": "alice", "command": "polkadot-parachain", "args": ["--force-authoring"]}
                ],
            },
            {
                "id": 2000,
                "cumulus_based": False,
                "default_command": "adder-collator",
                "collators": [{"name": "bob"}],
            },
        ],
    }
)

PORTS = NodePorts(rpc=9933, ws=9944, p2p=30333)


class TestRelayNodeCommand:
    """Tests for relay validator command lines."""

    def test_full_layout(self) -> None:
        """Declared args come first, then the injected flags."""
        relay = TOPOLOGY.relaychain

        argv = build_node_command(relay, relay.nodes[0], PORTS)

        assert argv == [
            "polkadot",
            "-lparachain=debug",
            "--name",
            "alice",
            "--chain",
            "rococo-local",
            "--port",
            "30333",
            "--rpc-port",
            "9933",
            "--ws-port",
            "9944",
            "--validator",
        ]

    def test_non_validator_gets_no_role_flag(self) -> None:
        """Full nodes are started without --validator."""
        relay = TOPOLOGY.relaychain

        argv = build_node_command(relay, relay.nodes[1], PORTS)

        assert "--validator" not in argv
        assert "--collator" not in argv

    def test_base_path_per_node(self, tmp_path: Path) -> None:
        """Each node keeps its data under base_dir/chain/name."""
        relay = TOPOLOGY.relaychain

        argv = build_node_command(relay, relay.nodes[0], PORTS, base_dir=tmp_path)

        index = argv.index("--base-path")
        assert argv[index + 1] == str(tmp_path / "relay" / "alice")


class TestCollatorCommand:
    """Tests for parachain collator command lines."""

    def test_cumulus_collator_gets_relay_endpoint(self) -> None:
        """Cumulus collators follow the relay chain over its WebSocket RPC."""
        para = TOPOLOGY.parachain(1000)
        endpoint = relay_rpc_url(NodePorts(rpc=7100, ws=7101, p2p=7102), "127.0.0.1")

        argv = build_node_command(para, para.collators[0], PORTS, relay_endpoint=endpoint)

        assert argv[:2] == ["polkadot-parachain", "--force-authoring"]
        assert argv[argv.index("--chain") + 1] == "asset-hub-rococo-local"
        assert "--collator" in argv
        assert argv[-2:] == ["--relay-chain-rpc-url", "ws://127.0.0.1:7101"]

    def test_non_cumulus_collator_ignores_relay_endpoint(self) -> None:
        """Only cumulus collators receive the relay endpoint."""
        para = TOPOLOGY.parachain(2000)

        argv = build_node_command(
            para, para.collators[0], PORTS, relay_endpoint="ws://127.0.0.1:7101"
        )

        assert argv[0] == "adder-collator"
        assert "--relay-chain-rpc-url" not in argv
        assert "--chain" not in argv

    def test_relay_endpoint_on_ipv6_host(self) -> None:
        """IPv6 relay hosts are bracketed in the WebSocket URL."""
        url = relay_rpc_url(NodePorts(rpc=7100, ws=7101, p2p=7102), "::1")

        assert url == "ws://[::1]:7101"
