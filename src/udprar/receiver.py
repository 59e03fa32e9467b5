"""UDP datagram receiver with blocking and polled reception.

Binds one UDP socket to a local IPv4 address and hands datagrams to the
caller one at a time, either by blocking until one arrives or by being
polled repeatedly.  Ease of use is prioritised over options: buffer
size, socket options and address family are derived automatically.

The polled mode is a small state machine (idle, pending, complete)
driven by a ``selectors`` demultiplexer.  Each call performs at most
one transition and never blocks.

Not thread safe.  All calls on one receiver must come from a single
thread (or be serialized by the caller).

Example:
    >>> from udprar.receiver import DatagramReceiver
    >>> rar = DatagramReceiver("127.0.0.1", 8861)
    >>> data = rar.receive_blocking()  # Blocks until a datagram arrives
    >>> while (data := rar.receive_nonblocking()) is None:
    ...     time.sleep(0.1)
    >>> rar.close()
"""

import enum
import selectors
import socket

from udprar.config import DEFAULT_BUFFER_SIZE


class ReceiverError(OSError):
    """Base class for receiver failures."""


class BindError(ReceiverError):
    """The socket could not be opened or bound."""


class ReadError(ReceiverError):
    """The network stack reported a failure during a read."""


class State(enum.Enum):
    """Polling cycle state."""

    IDLE = "idle"
    PENDING = "pending"
    COMPLETE = "complete"


def _check_ipv4(address: str) -> None:
    """Raise BindError unless *address* is a dotted-decimal IPv4 address."""
    if not isinstance(address, str):
        raise BindError("address must be str, got %s" % type(address).__name__)
    try:
        socket.inet_pton(socket.AF_INET, address)
    except OSError:
        raise BindError("invalid IPv4 address: %r" % address) from None


def _check_port(port: int) -> None:
    """Raise BindError unless *port* is an int in 0..65535."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise BindError("port must be int, got %s" % type(port).__name__)
    if not 0 <= port <= 65535:
        raise BindError("port out of range: %d" % port)


def query_buffer_size(sock: socket.socket) -> int:
    """Return the socket's receive-buffer size as reported by the OS.

    Falls back to ``DEFAULT_BUFFER_SIZE`` if the query fails or
    reports a non-positive value.

    Example:
        >>> query_buffer_size(sock)
        212992
    """
    try:
        size = sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
    except OSError:
        return DEFAULT_BUFFER_SIZE
    if size <= 0:
        return DEFAULT_BUFFER_SIZE
    return size


class DatagramReceiver:
    """Bound UDP endpoint delivering one datagram per call.

    The socket is opened and bound on construction and stays bound
    until ``close()``.  An internal buffer sized to the OS receive
    buffer holds incoming data; every returned datagram is a fresh
    ``bytes`` copy of exactly the received length.

    Datagrams larger than the buffer are truncated by the OS and the
    tail is lost.  This is not reported.

    Args:
        address: Local IPv4 address of the receiving interface
            (e.g. ``"127.0.0.1"``).
        port: UDP port to bind.  ``0`` picks an ephemeral port,
            see ``address``.
        buffer_size: Override the OS-reported buffer capacity.

    Raises:
        BindError: If the address is invalid or the socket cannot be
            opened or bound.

    Example:
        >>> with DatagramReceiver("127.0.0.1", 8861) as rar:
        ...     rar.receive_blocking()
        b'message1'
    """

    def __init__(self, address: str, port: int, buffer_size: int | None = None):
        """Open the socket, bind it and allocate the receive buffer."""
        _check_ipv4(address)
        _check_port(port)
        if buffer_size is not None:
            if isinstance(buffer_size, bool) or not isinstance(buffer_size, int):
                raise ValueError(
                    "buffer_size must be int, got %s" % type(buffer_size).__name__
                )
            if buffer_size <= 0:
                raise ValueError("buffer_size must be positive, got %d" % buffer_size)

        try:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise BindError("cannot open UDP socket: %s" % exc) from exc

        try:
            self._sock.bind((address, port))
        except OSError as exc:
            self._sock.close()
            raise BindError(
                "cannot bind %s:%d: %s" % (address, port, exc)
            ) from exc

        if buffer_size is None:
            buffer_size = query_buffer_size(self._sock)
        self._buffer = bytearray(buffer_size)
        self._view = memoryview(self._buffer)

        self._selector = selectors.DefaultSelector()
        self._state = State.IDLE
        self._bytes_pending = 0
        self._closed = False

    # -- properties ----------------------------------------------------

    @property
    def address(self) -> tuple[str, int]:
        """The bound ``(host, port)`` as reported by the OS."""
        return self._sock.getsockname()

    @property
    def capacity(self) -> int:
        """Largest datagram payload retrievable in one call."""
        return len(self._buffer)

    @property
    def state(self) -> State:
        """Current polling cycle state."""
        return self._state

    @property
    def receive_pending(self) -> bool:
        """True while a polled read is outstanding or unclaimed."""
        return self._state is not State.IDLE

    @property
    def bytes_pending(self) -> int:
        """Size of the completed, unclaimed datagram (0 if none)."""
        return self._bytes_pending

    @property
    def closed(self) -> bool:
        """True once ``close()`` has been called."""
        return self._closed

    # -- blocking ------------------------------------------------------

    def receive_blocking(self) -> bytes:
        """Receive a single datagram, blocking until one arrives.

        If a polled read already completed, that datagram is returned
        first.  A polled read still outstanding is folded into this
        call, so the receiver is idle afterwards.

        Returns:
            The datagram payload.

        Raises:
            ReadError: If the receiver is closed or the read fails.

        Example:
            >>> rar.receive_blocking()
            b'message1'
        """
        self._ensure_open()

        if self._state is State.COMPLETE:
            return self._claim()
        if self._state is State.PENDING:
            try:
                self._selector.unregister(self._sock)
            except (ValueError, KeyError) as exc:
                if self._closed:
                    raise ReadError("receiver is closed") from exc
                raise
            self._state = State.IDLE

        try:
            n = self._sock.recv_into(self._view)
        except OSError as exc:
            raise ReadError("receive failed: %s" % exc) from exc
        return bytes(self._view[:n])

    def receive_text_blocking(self, encoding: str = "utf-8") -> str:
        """Receive a single datagram as text, blocking until one arrives.

        Raises:
            ReadError: If the receiver is closed or the read fails.
            UnicodeDecodeError: If the payload is not valid *encoding*.
        """
        return self.receive_blocking().decode(encoding)

    # -- polled --------------------------------------------------------

    def receive_nonblocking(self) -> bytes | None:
        """Poll for a datagram without blocking.

        Performs one step of the polling cycle:

        - idle: start a read and return ``None``.
        - pending: let the selector dispatch at most one ready
          completion, then return ``None``.
        - complete: return the datagram and go back to idle.

        Call repeatedly, ideally with a short sleep in between, until
        the result is not ``None``.  A zero-length datagram is returned
        as ``b""``, which is distinct from ``None``.

        Returns:
            The datagram payload, or ``None`` if nothing is ready.

        Raises:
            ReadError: If the receiver is closed or the read fails.

        Example:
            >>> rar.receive_nonblocking()  # starts a read
            >>> rar.receive_nonblocking()  # still waiting
            >>> rar.receive_nonblocking()
            b'message2'
        """
        self._ensure_open()

        try:
            if self._state is State.IDLE:
                self._start_read()
                return None

            if self._state is State.PENDING:
                self._poll_one()
                return None
        except (ValueError, KeyError) as exc:
            # close() ran mid-step, e.g. from a signal handler
            if self._closed:
                raise ReadError("receiver is closed") from exc
            raise

        return self._claim()

    def receive_text_nonblocking(self, encoding: str = "utf-8") -> str | None:
        """Poll for a datagram as text; ``None`` if nothing is ready.

        Raises:
            ReadError: If the receiver is closed or the read fails.
            UnicodeDecodeError: If the payload is not valid *encoding*.
        """
        data = self.receive_nonblocking()
        if data is None:
            return None
        return data.decode(encoding)

    def _start_read(self) -> None:
        """Register the socket with its completion callback."""
        self._bytes_pending = 0
        self._selector.register(self._sock, selectors.EVENT_READ, self._on_readable)
        self._state = State.PENDING

    def _poll_one(self) -> None:
        """Dispatch at most one ready completion, without waiting."""
        try:
            events = self._selector.select(timeout=0)
        except OSError as exc:
            raise ReadError("poll failed: %s" % exc) from exc
        for key, _ in events[:1]:
            key.data()

    def _on_readable(self) -> None:
        """Completion callback: read the datagram into the buffer."""
        try:
            self._sock.setblocking(False)
            try:
                n = self._sock.recv_into(self._view)
            finally:
                self._sock.setblocking(True)
        except BlockingIOError:
            # Spurious readiness; stay pending
            return
        except OSError as exc:
            raise ReadError("receive failed: %s" % exc) from exc

        self._selector.unregister(self._sock)
        self._bytes_pending = n
        self._state = State.COMPLETE

    def _claim(self) -> bytes:
        """Copy out the completed datagram and return to idle."""
        data = bytes(self._view[:self._bytes_pending])
        self._bytes_pending = 0
        self._state = State.IDLE
        return data

    # -- lifecycle -----------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ReadError("receiver is closed")

    def __enter__(self) -> "DatagramReceiver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the selector and the socket.  Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._state = State.IDLE
        self._bytes_pending = 0
        self._selector.close()
        try:
            self._sock.close()
        except OSError:
            pass
