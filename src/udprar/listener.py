"""Caller-side loop that drives a receiver and reports datagrams.

The receiver itself is silent; this listener pulls datagrams from it in
either blocking or polling mode and logs each one.

Example:
    >>> from udprar.listener import Listener
    >>> from udprar.receiver import DatagramReceiver
    >>> listener = Listener(DatagramReceiver("127.0.0.1", 8861), "polling")
    >>> listener.run(shutdown, limit=1)
    1
"""

import logging
import threading

from udprar.config import MODES, POLL_INTERVAL_S
from udprar.receiver import ReadError

log = logging.getLogger(__name__)

_PREVIEW_LEN = 32


def preview(data: bytes) -> str:
    """Return a short printable rendering of *data* for log lines.

    Printable ASCII is kept, everything else becomes ``\\xNN``.

    Example:
        >>> preview(b"ok\\x00\\xff")
        'ok\\\\x00\\\\xff'
    """
    out = []
    for b in data[:_PREVIEW_LEN]:
        if 0x20 <= b < 0x7F and b != 0x5C:
            out.append(chr(b))
        else:
            out.append("\\x%02x" % b)
    if len(data) > _PREVIEW_LEN:
        out.append("...")
    return "".join(out)


class Listener:
    """Receives datagrams from a receiver and logs them.

    Args:
        receiver: Object with ``receive_blocking()`` and
            ``receive_nonblocking()`` methods.
        mode: ``"blocking"`` or ``"polling"``.
        poll_interval: Seconds to wait between empty polls.

    Example:
        >>> listener = Listener(receiver, "blocking")
        >>> listener.receive()
        b'message1'
    """

    def __init__(self, receiver, mode: str = "polling",
                 poll_interval: float = POLL_INTERVAL_S):
        """Initialize the listener."""
        if mode not in MODES:
            raise ValueError("mode must be 'blocking' or 'polling', got '%s'" % mode)
        self._receiver = receiver
        self._mode = mode
        self._poll_interval = poll_interval
        self.count = 0

    @property
    def mode(self) -> str:
        """Reception mode, ``"blocking"`` or ``"polling"``."""
        return self._mode

    def receive(self) -> bytes | None:
        """Receive at most one datagram.

        In blocking mode waits for a datagram.  In polling mode makes a
        single poll and returns ``None`` if nothing is ready.

        Raises:
            ReadError: If the receiver fails.
        """
        if self._mode == "blocking":
            data = self._receiver.receive_blocking()
        else:
            data = self._receiver.receive_nonblocking()
            if data is None:
                return None

        self.count += 1
        log.info("datagram %d: %d bytes: %s", self.count, len(data), preview(data))
        return data

    def run(self, shutdown: threading.Event, limit: int | None = None) -> int:
        """Receive until *shutdown* is set or *limit* datagrams arrived.

        A read error ends the loop; it is logged unless shutdown was
        requested (closing the receiver is how a blocked read is woken).

        Returns:
            The number of datagrams received by this call.
        """
        received = 0

        while not shutdown.is_set():
            if limit is not None and received >= limit:
                break
            try:
                data = self.receive()
            except ReadError as exc:
                if not shutdown.is_set():
                    log.warning("receive failed: %s", exc)
                break
            if data is None:
                shutdown.wait(self._poll_interval)
                continue
            received += 1

        return received
