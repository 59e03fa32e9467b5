"""Fire-and-forget UDP sender.

Puts datagrams on the wire to an ``(address, port)``.  No handshake,
no acknowledgement, no retry -- if the datagram is lost, it is lost.

Example:
    >>> from udprar.sender import send_datagram
    >>> send_datagram("127.0.0.1", 8861, b"message1")
    8

    From the shell::

        udprar-send 127.0.0.1 8861 hello
"""

import argparse
import socket
import sys


def _to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class DatagramSender:
    """UDP socket for sending datagrams to one destination.

    Args:
        address: Destination IPv4 address.
        port: Destination UDP port.

    Example:
        >>> with DatagramSender("127.0.0.1", 8861) as tx:
        ...     tx.send("message1")
        8
    """

    def __init__(self, address: str, port: int):
        """Open the socket."""
        self._dest = (address, port)
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(self, data: bytes | str) -> int:
        """Send one datagram; ``str`` is UTF-8 encoded.

        Returns:
            Number of bytes sent.
        """
        return self._sock.sendto(_to_bytes(data), self._dest)

    def __enter__(self) -> "DatagramSender":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the socket."""
        try:
            self._sock.close()
        except OSError:
            pass


def send_datagram(address: str, port: int, data: bytes | str) -> int:
    """Send a single datagram to *address*:*port* and return bytes sent."""
    with DatagramSender(address, port) as tx:
        return tx.send(data)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point -- send one message and exit."""
    parser = argparse.ArgumentParser(description="send one UDP datagram")
    parser.add_argument("address", help="destination IPv4 address")
    parser.add_argument("port", type=int, help="destination UDP port")
    parser.add_argument("message", help="payload, sent as UTF-8")
    args = parser.parse_args(argv)

    try:
        n = send_datagram(args.address, args.port, args.message)
    except OSError as exc:
        print("udprar-send: %s" % exc, file=sys.stderr)
        return 1
    print("sent %d bytes to %s:%d" % (n, args.address, args.port))
    return 0


if __name__ == "__main__":
    sys.exit(main())
