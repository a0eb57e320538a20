import logging
import os
import signal
import socket
import threading
import time

import pytest

from fenrisd.cli import LOGGER_NAME, build_parser, configure_logging, main


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.host == "0.0.0.0"
    assert args.port == "5555"
    assert args.log_level == "info"
    assert args.log_file == "fenris_server.log"
    assert args.no_console_log is False
    assert args.file_log is False


def test_parser_short_options_and_flags():
    args = build_parser().parse_args(
        ["-H", "127.0.0.1", "-p", "7000", "--no-console-log", "--file-log"]
    )
    assert args.host == "127.0.0.1"
    assert args.port == "7000"
    assert args.no_console_log is True
    assert args.file_log is True


@pytest.mark.parametrize(
    ("name", "level"),
    [
        ("debug", logging.DEBUG),
        ("info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("critical", logging.CRITICAL),
    ],
)
def test_configure_logging_levels(name, level):
    logger = configure_logging(name, console=False)
    assert logger.name == LOGGER_NAME
    assert logger.level == level


def test_configure_logging_trace_is_below_debug():
    logger = configure_logging("trace", console=False)
    assert logger.level < logging.DEBUG


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("loud", console=False)


def test_configure_logging_writes_file(tmp_path):
    log_file = tmp_path / "server.log"
    logger = configure_logging("info", str(log_file), console=False, file_log=True)
    logger.info("hello from the log")
    logger.debug("hidden detail")
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "hello from the log" in text
    assert "hidden detail" not in text


def test_main_rejects_bad_log_level(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["--log-level", "loud", "--no-console-log"]) == 1


def test_main_rejects_unknown_option(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["--bogus"]) == 1


def test_main_fails_when_port_is_taken(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        status = main(["-H", "127.0.0.1", "-p", str(port), "--no-console-log"])
    assert status == 1


def test_main_runs_until_interrupted(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    log_file = tmp_path / "run.log"
    original = signal.getsignal(signal.SIGINT)

    def _interrupt_when_ready():
        deadline = time.monotonic() + 10
        while signal.getsignal(signal.SIGINT) is original and time.monotonic() < deadline:
            time.sleep(0.02)
        time.sleep(0.2)
        os.kill(os.getpid(), signal.SIGINT)

    thread = threading.Thread(target=_interrupt_when_ready, daemon=True)
    thread.start()
    status = main(
        [
            "-H", "127.0.0.1",
            "-p", "0",
            "--no-console-log",
            "--file-log",
            "--log-file", str(log_file),
        ]
    )
    thread.join(timeout=5)

    assert status == 0
    assert signal.getsignal(signal.SIGINT) is original
    text = log_file.read_text(encoding="utf-8")
    assert "Server started successfully" in text
    assert "Fenris server shutting down" in text
    assert (tmp_path / "fenris_server_dir").is_dir()