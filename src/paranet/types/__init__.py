"""Base models and exceptions shared across paranet."""

from .base import CamelModel, FrozenModel
from .exceptions import (
    ChannelRegistrationError,
    CollatorStartupError,
    InvalidStateTransition,
    LaunchTimeoutError,
    NodeStartupError,
    ParanetError,
    PortExhaustionError,
    ProcessCrashError,
    RelayChainStartupError,
    RpcError,
    ValidationError,
    ValidationReason,
)

__all__ = [
    # Models
    "CamelModel",
    "FrozenModel",
    # Exceptions
    "ParanetError",
    "ValidationError",
    "ValidationReason",
    "PortExhaustionError",
    "InvalidStateTransition",
    "LaunchTimeoutError",
    "RpcError",
    "NodeStartupError",
    "RelayChainStartupError",
    "CollatorStartupError",
    "ChannelRegistrationError",
    "ProcessCrashError",
]
