"""Port allocation for network nodes."""

from .allocator import NodePorts, PortAllocator, PortAssignment, is_port_bindable

__all__ = [
    "NodePorts",
    "PortAllocator",
    "PortAssignment",
    "is_port_bindable",
]
