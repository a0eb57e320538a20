"""Accepts client connections and serves each one on its own thread."""

from __future__ import annotations

import itertools
import logging
import socket
import threading
from typing import Any

from .channel import ChannelError, receive_message, send_message, server_handshake
from .client_info import ClientInfo
from .protocol import ProtocolError, deserialize_request, serialize_response

__all__ = ["ConnectionManager"]

_POLL_INTERVAL = 0.2
_BACKLOG = 10


class ConnectionManager:
    """Listens on a host and port and hands each client's requests to a handler.

    The handler is any object with a ``handle_request(request, client_info)``
    method returning a response.
    """

    def __init__(
        self,
        hostname: str,
        port: str | int,
        client_handler: Any = None,
        logger_name: str = "fenris_server",
    ) -> None:
        self.hostname = hostname
        self.port = str(port)
        self.client_handler = client_handler
        self.address: tuple[str, int] | None = None
        self._logger = logging.getLogger(logger_name)
        self._running = threading.Event()
        self._server_socket: socket.socket | None = None
        self._listen_thread: threading.Thread | None = None
        self._clients: dict[int, socket.socket] = {}
        self._client_threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def __enter__(self) -> ConnectionManager:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Bind, listen and start accepting clients.

        Raises RuntimeError without a client handler and OSError if the
        address cannot be bound.
        """
        if self._running.is_set():
            self._logger.warning("connection manager already running")
            return
        if self.client_handler is None:
            raise RuntimeError("no client handler set, cannot start connection manager")

        sock = self._bind()
        try:
            sock.listen(_BACKLOG)
        except OSError as exc:
            self._logger.error("listen failed: %s", exc)
            sock.close()
            raise
        sock.settimeout(_POLL_INTERVAL)

        self._server_socket = sock
        self.address = sock.getsockname()[:2]
        self._running.set()
        self._listen_thread = threading.Thread(
            target=self._accept_loop, name="fenrisd-accept", daemon=True
        )
        self._listen_thread.start()
        self._logger.info("connection manager started on %s:%s", self.hostname, self.address[1])

    def stop(self) -> None:
        """Stop accepting, close every client connection and wait for their threads."""
        if not self._running.is_set():
            return
        self._running.clear()

        if self._listen_thread is not None:
            self._listen_thread.join()
            self._listen_thread = None
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

        with self._lock:
            sockets = list(self._clients.values())
            threads = list(self._client_threads)
            self._client_threads.clear()
        for client in sockets:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        for thread in threads:
            thread.join()
        with self._lock:
            self._clients.clear()

        self._logger.info("connection manager stopped")

    def active_client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def _bind(self) -> socket.socket:
        try:
            infos = socket.getaddrinfo(
                self.hostname,
                self.port,
                socket.AF_UNSPEC,
                socket.SOCK_STREAM,
                0,
                socket.AI_PASSIVE,
            )
        except socket.gaierror as exc:
            self._logger.error("getaddrinfo: %s", exc)
            raise

        last_error: OSError | None = None
        for family, socktype, proto, _, sockaddr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError as exc:
                self._logger.error("server: socket creation failed: %s", exc)
                last_error = exc
                continue
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind(sockaddr)
            except OSError as exc:
                self._logger.error("server: bind failed: %s", exc)
                sock.close()
                last_error = exc
                continue
            return sock

        self._logger.error("server: failed to bind")
        raise OSError(f"failed to bind {self.hostname}:{self.port}") from last_error

    def _accept_loop(self) -> None:
        assert self._server_socket is not None
        server = self._server_socket
        while self._running.is_set():
            try:
                conn, peer = server.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running.is_set():
                    break
                self._logger.error("accept failed: %s", exc)
                continue

            if not self._running.is_set():
                conn.close()
                break

            conn.settimeout(None)
            self._logger.info("server: got connection from %s", peer[0])
            client_id = next(self._ids)
            thread = threading.Thread(
                target=self._serve_client,
                args=(conn, client_id),
                name=f"fenrisd-client-{client_id}",
                daemon=True,
            )
            with self._lock:
                self._clients[client_id] = conn
                self._client_threads = [t for t in self._client_threads if t.is_alive()]
                self._client_threads.append(thread)
            thread.start()

    def _serve_client(self, conn: socket.socket, client_id: int) -> None:
        client_info = ClientInfo(client_id=client_id, socket=conn)
        try:
            try:
                client_info.encryption_key = server_handshake(conn)
            except ChannelError as exc:
                self._logger.error("key exchange failed with client %d: %s", client_id, exc)
                return

            while self._running.is_set() and client_info.keep_connection:
                try:
                    payload = receive_message(conn, client_info.encryption_key)
                    request = deserialize_request(payload)
                except (ChannelError, ProtocolError) as exc:
                    self._logger.error(
                        "failed to receive request from client %d: %s", client_id, exc
                    )
                    break

                self._logger.debug("handling request from client %d", client_id)
                try:
                    response = self.client_handler.handle_request(request, client_info)
                except Exception:
                    self._logger.exception("handler failed for client %d", client_id)
                    break

                try:
                    send_message(
                        conn, client_info.encryption_key, serialize_response(response)
                    )
                except ChannelError as exc:
                    self._logger.error(
                        "failed to send response to client %d: %s", client_id, exc
                    )
                    break
        finally:
            conn.close()
            with self._lock:
                self._clients.pop(client_id, None)