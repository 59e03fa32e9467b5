"""Command-line listener -- binds a receiver and logs incoming datagrams.

Supports two modes:
- Polling: calls ``receive_nonblocking()`` with a sleep between polls
- Blocking: calls ``receive_blocking()`` in a loop

Foreground loop driven by an optional TOML config file and command-line
overrides.  Shuts down cleanly on SIGINT or SIGTERM.

Example:
    Run from the command line::

        udprar udprar.toml -v
        udprar --address 127.0.0.1 --port 8861 --mode blocking --count 3
"""

import argparse
import logging
import signal
import sys
import threading

from udprar.config import MODES, POLL_INTERVAL_S, load_config
from udprar.listener import Listener
from udprar.receiver import DatagramReceiver

log = logging.getLogger(__name__)

_shutdown = threading.Event()
_receiver = None


def _on_signal(signum: int, frame) -> None:
    """Set the shutdown event and close the receiver on SIGINT/SIGTERM.

    Closing the receiver makes a blocked read fail so the loop exits.
    """
    _shutdown.set()
    if _receiver is not None:
        _receiver.close()


def resolve_settings(args: argparse.Namespace) -> dict:
    """Merge the config file (if any) with command-line overrides.

    Raises:
        ValueError: If address or port is missing from both sources.

    Example:
        >>> resolve_settings(parser.parse_args(["--port", "8861"]))
        {'address': '0.0.0.0', 'port': 8861, 'mode': 'polling', ...}
    """
    if args.config:
        cfg = load_config(args.config)
    else:
        cfg = {
            "address": "0.0.0.0",
            "port": None,
            "mode": "polling",
            "poll_interval": POLL_INTERVAL_S,
        }

    if args.address is not None:
        cfg["address"] = args.address
    if args.port is not None:
        cfg["port"] = args.port
    if args.mode is not None:
        cfg["mode"] = args.mode

    if cfg["port"] is None:
        raise ValueError("missing required key: port (use a config file or --port)")
    return cfg


def run(cfg: dict, receiver, shutdown: threading.Event,
        limit: int | None = None) -> int:
    """Run the listener loop until *shutdown* is set.

    Returns the number of datagrams received.

    Example:
        >>> run({"mode": "polling", "poll_interval": 0.1}, rar, ev, limit=2)
        2
    """
    listener = Listener(receiver, cfg["mode"], cfg["poll_interval"])
    return listener.run(shutdown, limit)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="udprar datagram listener")
    parser.add_argument("config", nargs="?", help="path to TOML config file")
    parser.add_argument("--address", help="local IPv4 address to bind")
    parser.add_argument("--port", type=int, help="UDP port to bind")
    parser.add_argument("--mode", choices=MODES, help="reception mode")
    parser.add_argument(
        "--count", type=int, default=None,
        help="exit after this many datagrams",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point -- parse args, load config, run the listener.

    Example:
        From the shell::

            udprar udprar.toml
            udprar --port 8861 -v
    """
    global _receiver
    _shutdown.clear()

    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    try:
        cfg = resolve_settings(args)
        _receiver = DatagramReceiver(cfg["address"], cfg["port"])
    except (ValueError, OSError) as exc:
        log.error("%s", exc)
        return 1

    prev_int = signal.signal(signal.SIGINT, _on_signal)
    prev_term = signal.signal(signal.SIGTERM, _on_signal)

    host, port = _receiver.address
    log.info(
        "starting: address=%s port=%d mode=%s buffer=%d",
        host, port, cfg["mode"], _receiver.capacity,
    )
    log.debug("poll interval %.3fs", cfg["poll_interval"])

    try:
        count = run(cfg, _receiver, _shutdown, args.count)
    finally:
        _receiver.close()
        _receiver = None
        signal.signal(signal.SIGINT, prev_int)
        signal.signal(signal.SIGTERM, prev_term)
        log.info("shutting down")

    log.info("received %d datagrams", count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
