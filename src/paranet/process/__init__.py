"""Node process lifecycle: state machine, command lines and supervision."""

from .command import build_node_command, relay_rpc_url
from .states import NodeState
from .supervisor import CrashCallback, ProcessSupervisor, RuntimeNode

__all__ = [
    "CrashCallback",
    "NodeState",
    "ProcessSupervisor",
    "RuntimeNode",
    "build_node_command",
    "relay_rpc_url",
]
