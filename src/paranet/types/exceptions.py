"""Exception hierarchy for network orchestration."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum


class ParanetError(Exception):
    """
    Base exception for all orchestration errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ValidationReason(Enum):
    """Why a topology was rejected."""

    MALFORMED = "malformed"
    """The document does not have the expected shape or types."""

    INVALID_PORT = "invalid_port"
    """A declared port is outside 1..65535."""

    DUPLICATE_PORT = "duplicate_port"
    """Two nodes declare the same port anywhere in the topology."""

    DUPLICATE_NODE_NAME = "duplicate_node_name"
    """Two nodes of the same chain share a name."""

    DUPLICATE_PARACHAIN_ID = "duplicate_parachain_id"
    """Two parachains share an id."""

    UNKNOWN_PARACHAIN = "unknown_parachain"
    """A channel references a parachain that is not declared."""

    SELF_CHANNEL = "self_channel"
    """A channel has the same sender and recipient."""

    NON_POSITIVE_CHANNEL_BOUND = "non_positive_channel_bound"
    """A channel capacity or message size is zero or negative."""

    NO_NODES = "no_nodes"
    """A chain declares no nodes."""

    MISSING_COMMAND = "missing_command"
    """A node has no command and its chain has no default command."""


class ValidationError(ParanetError):
    """
    Raised when a topology violates a structural invariant.

    Validation is all-or-nothing: no corrected topology is ever produced.

    Attributes:
        reason: The violated invariant.
        detail: What exactly was wrong.
    """

    def __init__(self, reason: ValidationReason, detail: str) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"Invalid topology ({reason.value}): {detail}")


class PortExhaustionError(ParanetError):
    """
    Raised when no free port exists inside the search window.

    Attributes:
        base_port: First port of the window.
        search_window: Number of ports scanned.
    """

    def __init__(self, base_port: int, search_window: int) -> None:
        self.base_port = base_port
        self.search_window = search_window
        super().__init__(
            f"No free port in [{base_port}, {base_port + search_window}) "
            f"(window of {search_window} ports exhausted)"
        )


class InvalidStateTransition(ParanetError):
    """Raised when a supervisor attempts a transition its state machine forbids."""

    def __init__(self, node: str, current: str, target: str) -> None:
        self.node = node
        self.current = current
        self.target = target
        super().__init__(f"{node}: illegal transition {current} -> {target}")


class RpcError(ParanetError):
    """
    Raised when a JSON-RPC call fails.

    Covers transport errors, HTTP errors and JSON-RPC error objects.

    Attributes:
        method: The RPC method that was called.
        url: The endpoint that was called.
    """

    def __init__(self, method: str, url: str, detail: str) -> None:
        self.method = method
        self.url = url
        super().__init__(f"{method} @ {url}: {detail}")


class NodeStartupError(ParanetError):
    """
    Raised when a single node cannot be spawned or never becomes ready.

    Attributes:
        node: Label of the node (e.g. "relay/alice").
        reason: Why startup failed.
    """

    def __init__(self, node: str, reason: str) -> None:
        self.node = node
        self.reason = reason
        super().__init__(f"{node} failed to start: {reason}")


class RelayChainStartupError(ParanetError):
    """
    Raised when any relay-chain node fails to become ready.

    Fatal for the whole launch: no parachain is started.

    Attributes:
        failures: Failure reason by node label.
    """

    def __init__(self, failures: Mapping[str, str]) -> None:
        self.failures = dict(failures)
        summary = ", ".join(f"{node} ({reason})" for node, reason in self.failures.items())
        super().__init__(f"Relay chain failed to start: {summary}")


class CollatorStartupError(ParanetError):
    """
    Raised when collators of one parachain fail to become ready.

    Scoped to that parachain: siblings keep running.

    Attributes:
        para_id: The parachain that failed.
        failures: Failure reason by node label.
    """

    def __init__(self, para_id: int, failures: Mapping[str, str]) -> None:
        self.para_id = para_id
        self.failures = dict(failures)
        summary = ", ".join(f"{node} ({reason})" for node, reason in self.failures.items())
        super().__init__(f"Parachain {para_id} failed to start: {summary}")


class LaunchTimeoutError(ParanetError):
    """
    Raised when the whole launch exceeds the network timeout.

    Everything started so far has been torn down when this is raised.

    Attributes:
        timeout: The exceeded bound in seconds.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Network did not come up within {timeout:.1f}s")


class ChannelRegistrationError(ParanetError):
    """
    Raised when an HRMP channel is rejected or never accepted.

    Attributes:
        sender: Sending parachain id.
        recipient: Receiving parachain id.
        reason: Why registration failed.
    """

    def __init__(self, sender: int, recipient: int, reason: str) -> None:
        self.sender = sender
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Channel {sender} -> {recipient} not registered: {reason}")


class ProcessCrashError(ParanetError):
    """
    Describes a node process that exited after reaching RUNNING.

    Delivered asynchronously to the launcher rather than raised.

    Attributes:
        node: Label of the node.
        exit_code: Process return code (negative for signals).
    """

    def __init__(self, node: str, exit_code: int | None) -> None:
        self.node = node
        self.exit_code = exit_code
        super().__init__(f"{node} crashed with exit code {exit_code}")
