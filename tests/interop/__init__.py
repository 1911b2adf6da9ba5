"""
Interop tests for whole paranet networks.

Tests verify:

- Launch and teardown of relay validators and collators as OS processes
- Channel registration against a live JSON-RPC relay node
- Crash detection after launch
"""
