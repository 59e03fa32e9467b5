"""Integration test mirroring the receive-and-rejoice walkthrough.

Over localhost UDP: a blocking text receive, a polled text receive with
the sender firing after the tenth poll, a blocking binary receive, and a
polled binary receive with non-printable bytes appended.
"""

import time

import pytest

from udprar.receiver import DatagramReceiver
from udprar.sender import DatagramSender

from conftest import HOST, find_free_port


def _poll(rar, tx, message, text: bool):
    """Poll until a datagram arrives, sending *message* after poll 10.

    Returns the result and the number of polls that came back empty.
    """
    empty = 0
    i = 0
    while True:
        if text:
            result = rar.receive_text_nonblocking()
        else:
            result = rar.receive_nonblocking()
        if result is not None:
            return result, empty
        empty += 1

        time.sleep(0.01)
        i += 1
        if i == 10:
            tx.send(message)
        assert i < 500, "datagram never arrived"


@pytest.mark.integration
class TestWalkthrough:
    """End-to-end scenario over localhost."""

    def test_sync_and_async_text_and_binary(self) -> None:
        """All four receives return exactly what was sent."""
        port = find_free_port()
        with DatagramReceiver(HOST, port) as rar, DatagramSender(HOST, port) as tx:
            tx.send("message1")
            assert rar.receive_text_blocking() == "message1"

            received, empty = _poll(rar, tx, "message2", text=True)
            assert received == "message2"
            assert empty >= 10

            tx.send(b"message3")
            assert rar.receive_blocking() == b"message3"

            m4 = b"message4" + bytes([0x00, 0x01, 0x80, 0xFF])
            received, empty = _poll(rar, tx, m4, text=False)
            assert received == m4
            assert len(received) == 12
            assert empty >= 10

    def test_polled_datagram_not_duplicated(self) -> None:
        """After a claim, polling is empty until the next datagram."""
        port = find_free_port()
        with DatagramReceiver(HOST, port) as rar, DatagramSender(HOST, port) as tx:
            received, _ = _poll(rar, tx, b"once", text=False)
            assert received == b"once"

            for _ in range(20):
                assert rar.receive_nonblocking() is None
                time.sleep(0.005)
