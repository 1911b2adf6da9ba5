"""Tests for topology validation."""

from __future__ import annotations

from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from paranet.topology import NodeKey, TopologySpec, topology_from_dict
from paranet.types import ValidationError, ValidationReason


def _relay(*nodes: dict[str, Any]) -> dict[str, Any]:
    return {"chain": "rococo-local", "default_command": "polkadot", "nodes": list(nodes)}


def _topology(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "relaychain": _relay({"name": "alice"}, {"name": "bob"}),
        "parachains": [
            {"id": 1000, "default_command": "collator", "collators": [{"name": "alice"}]},
            {"id": 2000, "default_command": "collator", "collators": [{"name": "alice"}]},
        ],
    }
    data.update(overrides)
    return data


def _reason(data: dict[str, Any]) -> ValidationReason:
    with pytest.raises(ValidationError) as exc_info:
        topology_from_dict(data)
    return exc_info.value.reason


class TestValidTopology:
    """Tests for topologies that must be accepted."""

    def test_minimal_topology(self) -> None:
        """A relay chain with one node and nothing else is valid."""
        topology = topology_from_dict({"relaychain": _relay({"name": "alice"})})

        assert topology.parachains == []
        assert topology.hrmp_channels == []
        assert topology.relaychain.nodes[0].validator is True

    def test_same_node_name_on_different_chains(self) -> None:
        """Node names only need to be unique within a chain."""
        topology = topology_from_dict(_topology())

        keys = [key for key, _ in topology.all_nodes()]
        assert NodeKey("relay", "alice") in keys
        assert NodeKey("para-1000", "alice") in keys
        assert NodeKey("para-2000", "alice") in keys

    def test_distinct_explicit_ports_are_accepted(self) -> None:
        """Explicit ports that never collide pass validation."""
        topology = topology_from_dict(
            {
                "relaychain": _relay(
                    {"name": "alice", "rpc_port": 7100, "ws_port": 7101},
                    {"name": "bob", "rpc_port": 7200, "ws_port": 7201},
                )
            }
        )

        assert topology.declared_ports() == {7100, 7101, 7200, 7201}

    def test_all_nodes_order(self) -> None:
        """Relay nodes come first, then collators in parachain order."""
        topology = topology_from_dict(_topology())

        assert [str(key) for key, _ in topology.all_nodes()] == [
            "relay/alice",
            "relay/bob",
            "para-1000/alice",
            "para-2000/alice",
        ]

    def test_node_command_falls_back_to_default(self) -> None:
        """Nodes without a command use the chain's default command and args."""
        topology = topology_from_dict(
            {
                "relaychain": {
                    "chain": "rococo-local",
                    "default_command": "polkadot",
                    "default_args": ["-lparachain=debug"],
                    "nodes": [
                        {"name": "alice"},
                        {"name": "bob", "command": "custom", "args": ["--x"]},
                    ],
                }
            }
        )
        relay = topology.relaychain
        alice, bob = relay.nodes

        assert relay.command_for(alice) == "polkadot"
        assert relay.command_for(bob) == "custom"
        assert relay.args_for(bob) == ["-lparachain=debug", "--x"]

    def test_parachain_lookup(self) -> None:
        """Parachains are found by id."""
        topology = topology_from_dict(_topology())

        assert topology.parachain(2000).label == "para-2000"
        assert topology.parachain_ids == [1000, 2000]
        with pytest.raises(KeyError):
            topology.parachain(3000)


class TestRejectedTopology:
    """Tests for each structural invariant."""

    def test_duplicate_explicit_port_across_chains(self) -> None:
        """A port declared by a relay node and a collator is rejected."""
        data = _topology()
        data["relaychain"]["nodes"][0]["rpc_port"] = 9000
        data["parachains"][0]["collators"][0]["ws_port"] = 9000

        assert _reason(data) is ValidationReason.DUPLICATE_PORT

    def test_duplicate_port_within_one_node(self) -> None:
        """One node cannot use the same port for two purposes."""
        data = {"relaychain": _relay({"name": "alice", "rpc_port": 9000, "ws_port": 9000})}

        assert _reason(data) is ValidationReason.DUPLICATE_PORT

    @pytest.mark.parametrize("port", [0, -1, 65_536, 100_000])
    def test_port_out_of_range(self, port: int) -> None:
        """Ports outside 1..65535 are rejected."""
        data = {"relaychain": _relay({"name": "alice", "p2p_port": port})}

        assert _reason(data) is ValidationReason.INVALID_PORT

    def test_duplicate_node_name_in_chain(self) -> None:
        """Two relay nodes with the same name are rejected."""
        data = {"relaychain": _relay({"name": "alice"}, {"name": "alice"})}

        assert _reason(data) is ValidationReason.DUPLICATE_NODE_NAME

    def test_duplicate_parachain_id(self) -> None:
        """Two parachains with the same id are rejected."""
        data = _topology()
        data["parachains"][1]["id"] = 1000

        assert _reason(data) is ValidationReason.DUPLICATE_PARACHAIN_ID

    def test_channel_to_unknown_parachain(self) -> None:
        """Channels must reference declared parachains."""
        data = _topology(
            hrmp_channels=[
                {"sender": 1000, "recipient": 3000, "max_capacity": 8, "max_message_size": 1024}
            ]
        )

        assert _reason(data) is ValidationReason.UNKNOWN_PARACHAIN

    def test_self_channel(self) -> None:
        """A parachain cannot open a channel to itself."""
        data = _topology(
            hrmp_channels=[
                {"sender": 1000, "recipient": 1000, "max_capacity": 8, "max_message_size": 1024}
            ]
        )

        assert _reason(data) is ValidationReason.SELF_CHANNEL

    @pytest.mark.parametrize("field", ["max_capacity", "max_message_size"])
    def test_non_positive_channel_bound(self, field: str) -> None:
        """Channel capacity and message size must be positive."""
        channel = {"sender": 1000, "recipient": 2000, "max_capacity": 8, "max_message_size": 1024}
        channel[field] = 0

        assert _reason(_topology(hrmp_channels=[channel])) is (
            ValidationReason.NON_POSITIVE_CHANNEL_BOUND
        )

    def test_relay_without_nodes(self) -> None:
        """A relay chain needs at least one node."""
        assert _reason({"relaychain": _relay()}) is ValidationReason.NO_NODES

    def test_parachain_without_collators(self) -> None:
        """A parachain needs at least one collator."""
        data = _topology()
        data["parachains"][0]["collators"] = []

        assert _reason(data) is ValidationReason.NO_NODES

    def test_node_without_any_command(self) -> None:
        """A node needs its own command or a chain default."""
        data = {"relaychain": {"chain": "rococo-local", "nodes": [{"name": "alice"}]}}

        assert _reason(data) is ValidationReason.MISSING_COMMAND

    def test_unknown_field_is_malformed(self) -> None:
        """Typos in field names are not silently ignored."""
        data = _topology(hrmp_chanels=[])

        assert _reason(data) is ValidationReason.MALFORMED

    def test_missing_relaychain_is_malformed(self) -> None:
        """The relay chain section is mandatory."""
        assert _reason({"parachains": []}) is ValidationReason.MALFORMED

    def test_non_mapping_is_malformed(self) -> None:
        """A document that is not a mapping is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            topology_from_dict(["relaychain"])

        assert exc_info.value.reason is ValidationReason.MALFORMED

    @pytest.mark.parametrize("port", ["7100", 7100.0, True])
    def test_port_is_not_coerced(self, port: object) -> None:
        """Ports must be integers, not strings, floats or booleans."""
        data = _topology(relaychain=_relay({"name": "alice", "rpc_port": port}))

        assert _reason(data) is ValidationReason.MALFORMED

    def test_parachain_id_is_not_coerced(self) -> None:
        """A quoted parachain id is rejected."""
        data = _topology(
            parachains=[{"id": "1000", "default_command": "collator", "collators": [{"name": "a"}]}]
        )

        assert _reason(data) is ValidationReason.MALFORMED

    def test_validator_flag_is_not_coerced(self) -> None:
        """Only true and false are booleans."""
        data = _topology(relaychain=_relay({"name": "alice", "validator": "yes"}))

        assert _reason(data) is ValidationReason.MALFORMED


class TestExplicitPortProperties:
    """Property tests for explicit port validation."""

    @given(ports=st.lists(st.integers(1, 65_535), min_size=2, max_size=12))
    def test_accepts_exactly_when_ports_are_distinct(self, ports: list[int]) -> None:
        """Validation accepts a set of rpc ports if and only if they are distinct."""
        nodes = [{"name": f"node{i}", "rpc_port": port} for i, port in enumerate(ports)]
        data = {"relaychain": _relay(*nodes)}

        if len(set(ports)) == len(ports):
            topology = topology_from_dict(data)
            assert isinstance(topology, TopologySpec)
            assert topology.declared_ports() == set(ports)
        else:
            assert _reason(data) is ValidationReason.DUPLICATE_PORT
