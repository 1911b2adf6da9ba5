"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking node lifecycles
and channel registration.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    channel_registrations,
    generate_metrics,
    node_crashes,
    node_ready_time,
    node_starts,
    nodes_running,
)

__all__ = [
    "REGISTRY",
    "channel_registrations",
    "generate_metrics",
    "node_crashes",
    "node_ready_time",
    "node_starts",
    "nodes_running",
]
