"""Shared fixtures for the paranet unit tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from tests.paranet.helpers import RpcStubServer


@pytest.fixture
async def rpc_stub() -> AsyncIterator[RpcStubServer]:
    """Stub JSON-RPC servers, stopped after the test."""
    stub = RpcStubServer()
    yield stub
    await stub.close()
