"""The file server: a connection manager plus the handler that serves requests."""

from __future__ import annotations

import logging
from typing import Any

from .connection_manager import ConnectionManager

__all__ = ["Server"]

_DEFAULT_LOGGER_NAME = "FenrisServer"


class Server:
    """Serves clients on a host and port until stopped.

    The client handler is any object with a ``handle_request(request,
    client_info)`` method; it must be set before the server starts.
    """

    def __init__(
        self,
        hostname: str = "0.0.0.0",
        port: str | int = "5555",
        client_handler: Any = None,
        logger_name: str = "fenris_server",
    ) -> None:
        name = logger_name or _DEFAULT_LOGGER_NAME
        self.hostname = hostname
        self.port = str(port)
        self._logger = logging.getLogger(name)
        self._connections = ConnectionManager(
            hostname, self.port, client_handler, logger_name=name
        )
        self._running = False
        self._logger.info("Server initialized with host: %s, port: %s", hostname, self.port)

    @property
    def client_handler(self) -> Any:
        return self._connections.client_handler

    @client_handler.setter
    def client_handler(self, handler: Any) -> None:
        if self._running:
            raise RuntimeError("cannot change client handler while server is running")
        if handler is None:
            raise ValueError("client handler must not be None")
        self._connections.client_handler = handler
        self._logger.debug("Client handler set successfully")

    @property
    def address(self) -> tuple[str, int] | None:
        """The bound (host, port), once the server has started."""
        return self._connections.address

    def __enter__(self) -> Server:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._running:
            self.stop()

    def start(self) -> None:
        """Start listening for clients.

        Raises RuntimeError if no client handler is set and OSError if the
        address cannot be bound.
        """
        if self._running:
            self._logger.warning("Server already running")
            return
        self._logger.info("Starting server on %s:%s", self.hostname, self.port)
        try:
            self._connections.start()
        except (OSError, RuntimeError):
            self._logger.error("Failed to start server")
            raise
        self._running = True
        self._logger.info("Server started successfully")

    def stop(self) -> None:
        """Stop the server and disconnect every client."""
        if not self._running:
            self._logger.warning("Server not running")
            return
        self._logger.info("Stopping server")
        self._connections.stop()
        self._running = False
        self._logger.info("Server stopped")

    def is_running(self) -> bool:
        return self._running

    def active_client_count(self) -> int:
        if not self._running:
            return 0
        return self._connections.active_client_count()