"""Topology model and loaders."""

from .loader import load_topology, topology_from_dict, topology_from_toml, topology_from_yaml
from .models import (
    RELAY_LABEL,
    ChannelSpec,
    NetworkSettings,
    NodeKey,
    NodeSpec,
    ParachainSpec,
    RelayChainSpec,
    TopologySpec,
    parachain_label,
)

__all__ = [
    # Models
    "TopologySpec",
    "RelayChainSpec",
    "ParachainSpec",
    "NodeSpec",
    "ChannelSpec",
    "NetworkSettings",
    "NodeKey",
    "RELAY_LABEL",
    "parachain_label",
    # Loading
    "load_topology",
    "topology_from_dict",
    "topology_from_toml",
    "topology_from_yaml",
]
