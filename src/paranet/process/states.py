"""Node lifecycle state machine."""

from __future__ import annotations

from enum import Enum, auto


class NodeState(Enum):
    """
    Lifecycle of one supervised node process.

    State Machine Diagram
    ---------------------
    ::

        CREATED --> STARTING --> READY --> RUNNING --> STOPPING --> STOPPED
                       |                    |   ^          ^
                       v                    v   |          |
                 FAILED_TO_START        UNHEALTHY          |
                       |                    |              |
                       |                    v              |
                       |                 CRASHED ----------+
                       +-----------------------------------+

    Every non-terminal state may also move to STOPPING when teardown begins.
    CREATED may move straight to STOPPED: there is no process to stop.

    Transitions
    -----------
    CREATED -> STARTING
        - Triggered when: the process is spawned

    STARTING -> READY -> RUNNING
        - Triggered when: the readiness probe first succeeds

    STARTING -> FAILED_TO_START
        - Triggered when: spawn fails, the readiness deadline passes,
          or the process exits before becoming ready

    RUNNING -> UNHEALTHY -> RUNNING
        - Triggered when: consecutive health probes fail, then one succeeds

    RUNNING | UNHEALTHY -> CRASHED
        - Triggered when: the process exits without being asked to
    """

    CREATED = auto()
    """Supervisor exists; no process has been spawned."""

    STARTING = auto()
    """Process spawned; waiting for the readiness probe."""

    READY = auto()
    """Readiness probe succeeded. Transient: immediately followed by RUNNING."""

    RUNNING = auto()
    """Process is live and monitored for crashes."""

    UNHEALTHY = auto()
    """Process is alive but fails its health probe."""

    CRASHED = auto()
    """Process exited unexpectedly after reaching RUNNING."""

    FAILED_TO_START = auto()
    """Spawn failed or the process never became ready."""

    STOPPING = auto()
    """Termination requested; waiting for the process to exit."""

    STOPPED = auto()
    """Terminal state. No process remains."""

    def can_transition_to(self, target: NodeState) -> bool:
        """
        Check if transition to target state is valid.

        Args:
            target: The proposed target state.

        Returns:
            True if the transition is allowed by the state machine rules.
        """
        return target in _VALID_TRANSITIONS.get(self, set())

    @property
    def is_live(self) -> bool:
        """Whether the node is serving (possibly degraded)."""
        return self in {NodeState.RUNNING, NodeState.UNHEALTHY}

    @property
    def is_failed(self) -> bool:
        """Whether the node ended in a failure state."""
        return self in {NodeState.CRASHED, NodeState.FAILED_TO_START}


_VALID_TRANSITIONS: dict[NodeState, set[NodeState]] = {
    NodeState.CREATED: {NodeState.STARTING, NodeState.STOPPED},
    NodeState.STARTING: {NodeState.READY, NodeState.FAILED_TO_START, NodeState.STOPPING},
    NodeState.READY: {NodeState.RUNNING, NodeState.STOPPING},
    NodeState.RUNNING: {NodeState.UNHEALTHY, NodeState.CRASHED, NodeState.STOPPING},
    NodeState.UNHEALTHY: {NodeState.RUNNING, NodeState.CRASHED, NodeState.STOPPING},
    NodeState.CRASHED: {NodeState.STOPPING},
    NodeState.FAILED_TO_START: {NodeState.STOPPING},
    NodeState.STOPPING: {NodeState.STOPPED},
    NodeState.STOPPED: set(),
}
"""Valid state transitions for the node state machine."""
