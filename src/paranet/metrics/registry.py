"""
Metric registry using prometheus_client.

Provides pre-defined metrics for a running test network.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for paranet metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Node Lifecycle
# -----------------------------------------------------------------------------

nodes_running = Gauge(
    "paranet_nodes_running",
    "Nodes currently running",
    ["chain"],
    registry=REGISTRY,
)

node_starts = Counter(
    "paranet_node_starts_total",
    "Node start attempts by outcome",
    ["chain", "outcome"],
    registry=REGISTRY,
)

node_crashes = Counter(
    "paranet_node_crashes_total",
    "Nodes that exited unexpectedly after becoming ready",
    ["chain"],
    registry=REGISTRY,
)

node_ready_time = Histogram(
    "paranet_node_ready_seconds",
    "Time from spawn to readiness",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Channels
# -----------------------------------------------------------------------------

channel_registrations = Counter(
    "paranet_channel_registrations_total",
    "HRMP channel registrations by outcome",
    ["outcome"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
