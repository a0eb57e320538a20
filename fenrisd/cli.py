"""Command line entry point for the file server."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from .request_manager import ClientHandler
from .server import Server

__all__ = ["build_parser", "configure_logging", "main", "LOGGER_NAME"]

LOGGER_NAME = "fenris_server"
TRACE = 5

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Return the parser for the server's command line options."""
    parser = argparse.ArgumentParser(prog="fenris_server")
    parser.add_argument(
        "--host", "-H", default="0.0.0.0", help="Hostname or IP address to bind to"
    )
    parser.add_argument("--port", "-p", default="5555", help="Port to listen on")
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level (trace, debug, info, warn, error, critical)",
    )
    parser.add_argument("--log-file", default="fenris_server.log", help="Path to log file")
    parser.add_argument(
        "--no-console-log", action="store_true", help="Disable logging to console"
    )
    parser.add_argument("--file-log", action="store_true", help="Enable logging to file")
    return parser


def configure_logging(
    level: str,
    log_file: str = "fenris_server.log",
    console: bool = True,
    file_log: bool = False,
) -> logging.Logger:
    """Set up the server logger; raises ValueError for an unknown level."""
    try:
        numeric = _LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level!r}") from None

    logging.addLevelName(TRACE, "TRACE")
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT)
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if file_log:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    if not handlers:
        handlers.append(logging.NullHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(numeric)
    logger.propagate = False
    return logger


def main(argv: list[str] | None = None) -> int:
    """Run the server until interrupted; return the exit status."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code in (0, None) else 1

    try:
        logger = configure_logging(
            args.log_level,
            args.log_file,
            console=not args.no_console_log,
            file_log=args.file_log,
        )
    except (ValueError, OSError):
        print("Failed to initialize logging system", file=sys.stderr)
        return 1

    logger.info("Starting Fenris server with logging level: %s", args.log_level)

    stop_requested = threading.Event()

    def _interrupt(signum: int, frame: object) -> None:
        print("\nReceived interrupt signal, shutting down...")
        stop_requested.set()

    previous = signal.signal(signal.SIGINT, _interrupt)
    try:
        server = Server(
            args.host, args.port, ClientHandler(LOGGER_NAME), logger_name=LOGGER_NAME
        )
        try:
            server.start()
        except (OSError, RuntimeError):
            logger.error("Failed to start server")
            return 1

        logger.info("Server started successfully on %s:%s", args.host, args.port)
        logger.info("Press Ctrl+C to stop the server")

        while not stop_requested.wait(0.5):
            pass

        logger.info("Stopping server...")
        server.stop()
        logger.info("Server stopped successfully")
    except Exception as exc:
        logger.error("exception occurred: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    logger.info("Fenris server shutting down")
    return 0