"""HRMP channel registration between parachains."""

from .registrar import ChannelOutcome, ChannelRegistrar

__all__ = ["ChannelOutcome", "ChannelRegistrar"]
