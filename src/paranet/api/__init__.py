"""HTTP status server for a running network."""

from .server import ApiServer, ApiServerConfig

__all__ = ["ApiServer", "ApiServerConfig"]
