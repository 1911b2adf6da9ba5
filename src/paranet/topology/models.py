"""
Typed topology of an ephemeral relay-chain network.

The topology is parsed once and never mutated.
Every structural invariant is checked while the models are built,
so a `TopologySpec` instance is always valid.
Scalars are strict: a quoted "7100" is not a port and 1.0 is not an id.

Invariant violations raise `paranet.types.ValidationError` directly.
It is not a `ValueError`, so pydantic lets it propagate unchanged
instead of folding it into its own error report.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from pydantic import Field, StrictBool, StrictFloat, StrictInt, StrictStr, model_validator

from paranet.config import MAX_PORT
from paranet.types import FrozenModel, ValidationError, ValidationReason

RELAY_LABEL: Final = "relay"
"""Chain label of the relay chain."""

PORT_KINDS: Final = ("rpc", "ws", "p2p")
"""Port kinds every node gets, in allocation order."""


def parachain_label(para_id: int) -> str:
    """Chain label of a parachain, e.g. `para-1000`."""
    return f"para-{para_id}"


@dataclass(frozen=True, slots=True, order=True)
class NodeKey:
    """Identity of a node across the whole topology."""

    chain: str
    """Chain label (`relay` or `para-<id>`)."""

    node: str
    """Node name, unique within its chain."""

    def __str__(self) -> str:
        return f"{self.chain}/{self.node}"


class NodeSpec(FrozenModel):
    """A relay-chain validator or a parachain collator as declared."""

    name: StrictStr
    """Node name. Also passed to the binary as `--name`."""

    validator: StrictBool = True
    """Whether the node authors blocks (`--validator` / `--collator`)."""

    command: StrictStr | None = None
    """Executable. Falls back to the chain's default command."""

    args: list[StrictStr] = Field(default_factory=list)
    """Extra arguments, appended after the chain's default arguments."""

    rpc_port: StrictInt | None = None
    """Declared RPC port. Allocated when omitted."""

    ws_port: StrictInt | None = None
    """Declared WebSocket port. Allocated when omitted."""

    p2p_port: StrictInt | None = None
    """Declared P2P port. Allocated when omitted."""

    @model_validator(mode="after")
    def check_port_range(self) -> NodeSpec:
        """Declared ports must be valid port numbers."""
        for kind, port in self.declared_ports():
            if not 1 <= port <= MAX_PORT:
                raise ValidationError(
                    ValidationReason.INVALID_PORT,
                    f"node '{self.name}' declares {kind}_port={port} outside 1..{MAX_PORT}",
                )
        return self

    def declared_ports(self) -> list[tuple[str, int]]:
        """Explicit ports as (kind, port) pairs, in allocation order."""
        declared = (self.rpc_port, self.ws_port, self.p2p_port)
        return [(kind, port) for kind, port in zip(PORT_KINDS, declared) if port is not None]


def _check_nodes(label: str, nodes: list[NodeSpec], default_command: str | None) -> None:
    """Shared checks for both chain kinds."""
    if not nodes:
        raise ValidationError(ValidationReason.NO_NODES, f"chain '{label}' declares no nodes")

    seen: set[str] = set()
    for node in nodes:
        if node.name in seen:
            raise ValidationError(
                ValidationReason.DUPLICATE_NODE_NAME,
                f"chain '{label}' declares node '{node.name}' more than once",
            )
        seen.add(node.name)

        if node.command is None and default_command is None:
            raise ValidationError(
                ValidationReason.MISSING_COMMAND,
                f"node '{label}/{node.name}' has no command and the chain has no default_command",
            )


class RelayChainSpec(FrozenModel):
    """The relay chain and its validator nodes."""

    chain: StrictStr
    """Chain profile passed as `--chain`. Also identifies the relay chain."""

    default_command: StrictStr | None = None
    """Executable used by nodes that do not set `command`."""

    default_args: list[StrictStr] = Field(default_factory=list)
    """Arguments prepended to every node's own arguments."""

    nodes: list[NodeSpec] = Field(default_factory=list)
    """Validator nodes, in declaration (and start) order."""

    @model_validator(mode="after")
    def check_nodes(self) -> RelayChainSpec:
        """At least one node, unique names, every node has a command."""
        _check_nodes(self.label, self.nodes, self.default_command)
        return self

    @property
    def label(self) -> str:
        """Chain label used in node keys."""
        return RELAY_LABEL

    @property
    def profile(self) -> str | None:
        """Chain profile passed to nodes."""
        return self.chain

    def command_for(self, node: NodeSpec) -> str:
        """Executable for a node of this chain."""
        command = node.command or self.default_command
        assert command is not None, "validated at construction"
        return command

    def args_for(self, node: NodeSpec) -> list[str]:
        """Declared arguments for a node of this chain."""
        return [*self.default_args, *node.args]


class ParachainSpec(FrozenModel):
    """A parachain and its collators."""

    id: StrictInt
    """Parachain id, unique across the topology."""

    chain: StrictStr | None = None
    """Chain profile passed as `--chain`. Omitted when unset."""

    cumulus_based: StrictBool = True
    """Whether collators need the relay-chain endpoint at startup."""

    default_command: StrictStr | None = None
    """Executable used by collators that do not set `command`."""

    default_args: list[StrictStr] = Field(default_factory=list)
    """Arguments prepended to every collator's own arguments."""

    collators: list[NodeSpec] = Field(default_factory=list)
    """Collators, in declaration order."""

    @model_validator(mode="after")
    def check_collators(self) -> ParachainSpec:
        """At least one collator, unique names, every collator has a command."""
        _check_nodes(self.label, self.collators, self.default_command)
        return self

    @property
    def label(self) -> str:
        """Chain label used in node keys."""
        return parachain_label(self.id)

    @property
    def profile(self) -> str | None:
        """Chain profile passed to collators."""
        return self.chain

    def command_for(self, node: NodeSpec) -> str:
        """Executable for a collator of this parachain."""
        command = node.command or self.default_command
        assert command is not None, "validated at construction"
        return command

    def args_for(self, node: NodeSpec) -> list[str]:
        """Declared arguments for a collator of this parachain."""
        return [*self.default_args, *node.args]


class ChannelSpec(FrozenModel):
    """
    A unidirectional HRMP channel.

    Bidirectional messaging needs two entries with sender and recipient swapped.
    """

    sender: StrictInt
    """Sending parachain id."""

    recipient: StrictInt
    """Receiving parachain id."""

    max_capacity: StrictInt
    """Maximum number of messages in flight."""

    max_message_size: StrictInt
    """Maximum message size in bytes."""

    @model_validator(mode="after")
    def check_bounds(self) -> ChannelSpec:
        """Distinct endpoints and positive bounds."""
        if self.sender == self.recipient:
            raise ValidationError(
                ValidationReason.SELF_CHANNEL,
                f"channel {self.sender} -> {self.recipient} has identical endpoints",
            )
        for field_name in ("max_capacity", "max_message_size"):
            value = getattr(self, field_name)
            if value <= 0:
                raise ValidationError(
                    ValidationReason.NON_POSITIVE_CHANNEL_BOUND,
                    f"channel {self.sender} -> {self.recipient} has {field_name}={value}",
                )
        return self

    def __str__(self) -> str:
        return f"{self.sender} -> {self.recipient}"


class NetworkSettings(FrozenModel):
    """Optional `[settings]` table of a topology file."""

    timeout: StrictFloat | None = None
    """Upper bound in seconds on the whole launch."""

    node_spawn_timeout: StrictFloat | None = None
    """Seconds each node gets to become ready."""

    base_port: StrictInt | None = None
    """First port scanned for nodes without explicit ports."""


class TopologySpec(FrozenModel):
    """
    Root of a parsed topology.

    Field names match the zombienet file format:
    `relaychain`, `parachains`, `hrmp_channels` and `settings`.
    """

    relaychain: RelayChainSpec
    """The relay chain."""

    parachains: list[ParachainSpec] = Field(default_factory=list)
    """Parachains, in declaration (and start) order."""

    hrmp_channels: list[ChannelSpec] = Field(default_factory=list)
    """Channels, in registration order."""

    settings: NetworkSettings = Field(default_factory=NetworkSettings)
    """Network-wide settings."""

    @model_validator(mode="after")
    def check_topology(self) -> TopologySpec:
        """Unique parachain ids, globally unique ports, channels reference parachains."""
        para_ids: set[int] = set()
        for para in self.parachains:
            if para.id in para_ids:
                raise ValidationError(
                    ValidationReason.DUPLICATE_PARACHAIN_ID,
                    f"parachain id {para.id} is declared more than once",
                )
            para_ids.add(para.id)

        # Ports must be unique across the whole topology, not just within a chain.
        owners: dict[int, str] = {}
        for key, node in self.all_nodes():
            for kind, port in node.declared_ports():
                owner = f"{key} {kind}_port"
                if port in owners:
                    raise ValidationError(
                        ValidationReason.DUPLICATE_PORT,
                        f"port {port} is declared by both {owners[port]} and {owner}",
                    )
                owners[port] = owner

        for channel in self.hrmp_channels:
            for endpoint in (channel.sender, channel.recipient):
                if endpoint not in para_ids:
                    raise ValidationError(
                        ValidationReason.UNKNOWN_PARACHAIN,
                        f"channel {channel} references undeclared parachain {endpoint}",
                    )
        return self

    @property
    def parachain_ids(self) -> list[int]:
        """Parachain ids in declaration order."""
        return [para.id for para in self.parachains]

    def parachain(self, para_id: int) -> ParachainSpec:
        """
        Look up a parachain by id.

        Raises:
            KeyError: If no parachain has this id.
        """
        for para in self.parachains:
            if para.id == para_id:
                return para
        raise KeyError(para_id)

    def all_nodes(self) -> list[tuple[NodeKey, NodeSpec]]:
        """
        Every node in allocation order.

        Relay nodes first, then each parachain's collators, all in declaration order.
        """
        nodes = [(NodeKey(RELAY_LABEL, node.name), node) for node in self.relaychain.nodes]
        for para in self.parachains:
            nodes.extend((NodeKey(para.label, node.name), node) for node in para.collators)
        return nodes

    def declared_ports(self) -> set[int]:
        """Every explicitly declared port."""
        return {port for _, node in self.all_nodes() for _, port in node.declared_ports()}
