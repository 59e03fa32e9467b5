"""Tests for udprar.daemon."""

import logging
import os
import threading

import pytest

from udprar.config import POLL_INTERVAL_S
from udprar.daemon import _on_signal, build_parser, main, resolve_settings, run
from udprar.receiver import DatagramReceiver
import udprar.daemon as daemon_mod

from conftest import HOST, find_free_port, send_later


def _write_toml(tmp_path, text: str) -> str:
    """Write TOML text to a temp file and return its path."""
    path = os.path.join(tmp_path, "udprar.toml")
    with open(path, "w") as f:
        f.write(text)
    return path


class TestResolveSettings:
    """Tests for merging config file and flags."""

    def test_flags_only(self) -> None:
        """Without a config file, flags and defaults apply."""
        args = build_parser().parse_args(["--port", "8861"])
        cfg = resolve_settings(args)

        assert cfg == {
            "address": "0.0.0.0",
            "port": 8861,
            "mode": "polling",
            "poll_interval": POLL_INTERVAL_S,
        }

    def test_flags_override_file(self, tmp_path) -> None:
        """Command-line flags win over the config file."""
        path = _write_toml(tmp_path, (
            '[receiver]\n'
            'address = "127.0.0.1"\n'
            'port = 8861\n'
            'mode = "polling"\n'
        ))
        args = build_parser().parse_args([path, "--port", "9000", "--mode", "blocking"])
        cfg = resolve_settings(args)

        assert cfg["address"] == "127.0.0.1"
        assert cfg["port"] == 9000
        assert cfg["mode"] == "blocking"

    def test_port_required(self) -> None:
        """No port anywhere raises ValueError."""
        args = build_parser().parse_args([])
        with pytest.raises(ValueError, match="port"):
            resolve_settings(args)


class TestRun:
    """Tests for the daemon run() function."""

    def test_polling_receives_until_limit(self) -> None:
        """run() in polling mode returns after limit datagrams."""
        port = find_free_port()
        with DatagramReceiver(HOST, port) as rar:
            t = send_later(port, b"one", b"two")
            cfg = {"mode": "polling", "poll_interval": 0.01}
            count = run(cfg, rar, threading.Event(), limit=2)
            t.join()

        assert count == 2

    def test_blocking_receives_until_limit(self) -> None:
        """run() in blocking mode returns after limit datagrams."""
        port = find_free_port()
        with DatagramReceiver(HOST, port) as rar:
            t = send_later(port, b"one")
            cfg = {"mode": "blocking", "poll_interval": 0.01}
            count = run(cfg, rar, threading.Event(), limit=1)
            t.join()

        assert count == 1

    def test_shutdown_stops_polling(self) -> None:
        """Setting shutdown ends a polling run with no traffic."""
        shutdown = threading.Event()
        timer = threading.Timer(0.1, shutdown.set)
        with DatagramReceiver(HOST, 0) as rar:
            timer.start()
            count = run({"mode": "polling", "poll_interval": 0.01}, rar, shutdown)
            timer.join()

        assert count == 0


class TestOnSignal:
    """Tests for the signal handler."""

    def test_sets_shutdown_and_closes_receiver(self) -> None:
        """_on_signal sets the event and closes the active receiver."""
        daemon_mod._shutdown.clear()
        rar = DatagramReceiver(HOST, 0)
        daemon_mod._receiver = rar
        try:
            _on_signal(2, None)
            assert daemon_mod._shutdown.is_set()
            assert rar.closed
        finally:
            daemon_mod._receiver = None
            daemon_mod._shutdown.clear()

    def test_without_receiver(self) -> None:
        """_on_signal works before a receiver exists."""
        daemon_mod._shutdown.clear()
        _on_signal(15, None)
        assert daemon_mod._shutdown.is_set()
        daemon_mod._shutdown.clear()


class TestMain:
    """Tests for the CLI entry point."""

    def test_main_counts_and_exits(self, caplog) -> None:
        """main receives --count datagrams and returns 0."""
        port = find_free_port()
        t = send_later(port, b"message1", delay=0.2)

        with caplog.at_level(logging.INFO):
            rc = main(["--address", HOST, "--port", str(port),
                       "--mode", "blocking", "--count", "1"])
        t.join()

        assert rc == 0
        assert "received 1 datagrams" in caplog.text

    def test_main_bind_failure(self, caplog) -> None:
        """An invalid address is logged and gives status 1."""
        with caplog.at_level(logging.ERROR):
            rc = main(["--address", "bogus", "--port", "0"])

        assert rc == 1
        assert "invalid IPv4" in caplog.text

    def test_main_missing_config(self, tmp_path, caplog) -> None:
        """A missing config file gives status 1."""
        with caplog.at_level(logging.ERROR):
            rc = main([os.path.join(tmp_path, "missing.toml")])

        assert rc == 1

    def test_main_config_is_directory(self, tmp_path, caplog) -> None:
        """A config path naming a directory is logged, status 1."""
        with caplog.at_level(logging.ERROR):
            rc = main([str(tmp_path) + os.sep])

        assert rc == 1
        assert caplog.records
