"""Reusable base models for topology and report data."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field name `rpc_port` in a Python model will be
    represented as `rpcPort` when it is serialized to JSON.

    Input keeps accepting the snake_case names used by topology files.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class FrozenModel(CamelModel):
    """
    An immutable pydantic base model that rejects unknown keys.

    Unknown keys in a topology file are almost always typos,
    so they fail loudly instead of being ignored.
    """

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
    }
