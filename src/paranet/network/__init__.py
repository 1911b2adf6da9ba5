"""Launching, inspecting and tearing down a whole network."""

from .handle import NetworkHandle
from .launcher import ChannelAdminFactory, NetworkLauncher
from .report import ChannelReport, NetworkReport, NodeReport
from .teardown import TeardownController, TeardownReport

__all__ = [
    "ChannelAdminFactory",
    "ChannelReport",
    "NetworkHandle",
    "NetworkLauncher",
    "NetworkReport",
    "NodeReport",
    "TeardownController",
    "TeardownReport",
]
