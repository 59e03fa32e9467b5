"""Project-wide configuration constants and config-file loading.

Central place for tuneable parameters shared across modules.
Import individual names where needed.

Example:
    >>> from udprar.config import load_config, DEFAULT_BUFFER_SIZE
    >>> cfg = load_config("udprar.toml")
    >>> cfg["mode"]
    'polling'
"""

import tomllib

# Receive buffer size used when the OS cannot report SO_RCVBUF.
DEFAULT_BUFFER_SIZE = 65536

# Seconds to wait between empty polls.
POLL_INTERVAL_S = 0.1

MODES = ("blocking", "polling")


def load_config(path: str) -> dict:
    """Read a TOML config file and validate the ``[receiver]`` section.

    Required keys: ``address`` (str), ``port`` (int, 0-65535).
    Optional keys: ``mode`` (``"blocking"`` or ``"polling"``, default
    ``"polling"``), ``poll_interval`` (positive number, seconds).

    Raises:
        ValueError: If any required key is missing or has the wrong type.

    Example:
        >>> cfg = load_config("udprar.toml")
        >>> cfg["address"], cfg["port"]
        ('127.0.0.1', 8861)
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    if "receiver" not in raw:
        raise ValueError("missing required section: [receiver]")
    section = raw["receiver"]
    if not isinstance(section, dict):
        raise ValueError("[receiver] must be a table")

    _require_str(section, "address")
    _require_int(section, "port")
    if not 0 <= section["port"] <= 65535:
        raise ValueError("port out of range: %d" % section["port"])

    mode = section.get("mode", "polling")
    if not isinstance(mode, str):
        raise ValueError("mode must be str, got %s" % type(mode).__name__)
    if mode not in MODES:
        raise ValueError("mode must be 'blocking' or 'polling', got '%s'" % mode)

    interval = section.get("poll_interval", POLL_INTERVAL_S)
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise ValueError(
            "poll_interval must be a number, got %s" % type(interval).__name__
        )
    if interval <= 0:
        raise ValueError("poll_interval must be positive, got %s" % interval)

    return {
        "address": section["address"],
        "port": section["port"],
        "mode": mode,
        "poll_interval": float(interval),
    }


def _require_str(raw: dict[str, object], key: str) -> None:
    """Validate that *key* exists in *raw* and is a str."""
    if key not in raw:
        raise ValueError("missing required key: %s" % key)
    if not isinstance(raw[key], str):
        raise ValueError("%s must be str, got %s" % (key, type(raw[key]).__name__))


def _require_int(raw: dict[str, object], key: str) -> None:
    """Validate that *key* exists in *raw* and is an int."""
    if key not in raw:
        raise ValueError("missing required key: %s" % key)
    if isinstance(raw[key], bool) or not isinstance(raw[key], int):
        raise ValueError("%s must be int, got %s" % (key, type(raw[key]).__name__))
