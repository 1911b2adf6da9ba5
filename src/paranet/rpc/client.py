"""
Minimal JSON-RPC 2.0 client over HTTP.

Substrate-style nodes serve JSON-RPC on their RPC port.
paranet only issues a handful of calls (health, channel administration),
so each call opens a short-lived client instead of keeping a pool alive
across the lifetime of the network.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Final

import httpx

from paranet.types import RpcError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Final = 5.0
"""HTTP request timeout in seconds."""

_request_ids = itertools.count(1)
"""Process-wide JSON-RPC request id sequence."""


@dataclass(frozen=True, slots=True)
class JsonRpcClient:
    """JSON-RPC client bound to one endpoint."""

    url: str
    """HTTP URL of the node's RPC endpoint."""

    timeout: float = DEFAULT_TIMEOUT
    """Per-request timeout in seconds."""

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Invoke a JSON-RPC method.

        Args:
            method: RPC method name.
            params: Positional parameters.

        Returns:
            The `result` member of the response.

        Raises:
            RpcError: On invalid URLs, network errors, HTTP errors, malformed
                responses or JSON-RPC error objects.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params if params is not None else [],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.RequestError as exc:
            raise RpcError(method, self.url, f"network error: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise RpcError(method, self.url, f"invalid URL: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise RpcError(
                method,
                self.url,
                f"HTTP error {exc.response.status_code}: {exc.response.text[:200]}",
            ) from exc
        except ValueError as exc:
            raise RpcError(method, self.url, f"response is not JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise RpcError(method, self.url, f"unexpected response: {body!r}")

        # A JSON-RPC error object takes precedence over any result member.
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                detail = f"error {error.get('code')}: {error.get('message')}"
            else:
                detail = f"error: {error!r}"
            raise RpcError(method, self.url, detail)

        if "result" not in body:
            raise RpcError(method, self.url, "response has neither result nor error")

        logger.debug("%s @ %s -> %r", method, self.url, body["result"])
        return body["result"]
