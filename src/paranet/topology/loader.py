"""
Topology loader.

Reads zombienet-style network descriptions from TOML or YAML.
Both formats share the same nested layout::

    [relaychain]
    default_command = "polkadot"
    chain = "rococo-local"

    [[relaychain.nodes]]
    name = "alice"
    rpc_port = 7100
    ws_port = 7101

    [[parachains]]
    id = 1000
    cumulus_based = true

    [[parachains.collators]]
    name = "alice"
    command = "polkadot-parachain"

    [[hrmp_channels]]
    sender = 1000
    recipient = 2000
    max_capacity = 8
    max_message_size = 1048576
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import pydantic
import yaml

from paranet.types import ValidationError, ValidationReason

from .models import TopologySpec

logger = logging.getLogger(__name__)

TOML_SUFFIXES = frozenset({".toml"})
"""File extensions parsed as TOML."""

YAML_SUFFIXES = frozenset({".yaml", ".yml"})
"""File extensions parsed as YAML."""


def topology_from_dict(data: Any) -> TopologySpec:
    """
    Build a validated topology from already-parsed data.

    Shape and type problems reported by pydantic are converted so that
    every rejection surfaces as a single `ValidationError` kind.

    Raises:
        ValidationError: If the data is not a valid topology.
    """
    if not isinstance(data, dict):
        raise ValidationError(
            ValidationReason.MALFORMED,
            f"topology must be a mapping, got {type(data).__name__}",
        )
    try:
        return TopologySpec.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(ValidationReason.MALFORMED, str(exc)) from exc


def topology_from_toml(text: str) -> TopologySpec:
    """
    Parse a topology from TOML text.

    Raises:
        ValidationError: If the text is not TOML or not a valid topology.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(ValidationReason.MALFORMED, f"invalid TOML: {exc}") from exc
    return topology_from_dict(data)


def topology_from_yaml(text: str) -> TopologySpec:
    """
    Parse a topology from YAML text.

    Raises:
        ValidationError: If the text is not YAML or not a valid topology.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValidationError(ValidationReason.MALFORMED, f"invalid YAML: {exc}") from exc
    return topology_from_dict(data)


def load_topology(path: Path | str) -> TopologySpec:
    """
    Load a topology file, choosing the parser from its extension.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: If the extension is unknown, the file is not UTF-8,
            or the content is invalid.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in TOML_SUFFIXES:
        parse = topology_from_toml
    elif suffix in YAML_SUFFIXES:
        parse = topology_from_yaml
    else:
        raise ValidationError(
            ValidationReason.MALFORMED,
            f"unsupported topology format '{suffix}' (expected .toml, .yaml or .yml)",
        )

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            ValidationReason.MALFORMED, f"{path} is not valid UTF-8: {exc}"
        ) from exc

    topology = parse(text)
    logger.info(
        "Loaded topology %s: %d relay nodes, %d parachains, %d channels",
        path,
        len(topology.relaychain.nodes),
        len(topology.parachains),
        len(topology.hrmp_channels),
    )
    return topology
