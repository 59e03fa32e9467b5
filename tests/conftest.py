"""Shared helpers for udprar tests."""

import socket
import threading
import time

from udprar.sender import send_datagram

HOST = "127.0.0.1"


def find_free_port() -> int:
    """Find an available UDP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind((HOST, 0))
        return s.getsockname()[1]


def send_udp(port: int, data: bytes) -> None:
    """Send a UDP datagram to localhost:port."""
    send_datagram(HOST, port, data)


def send_later(port: int, *datagrams: bytes, delay: float = 0.05) -> threading.Thread:
    """Start a thread that sends *datagrams* to localhost:port after *delay*."""

    def _run():
        for data in datagrams:
            time.sleep(delay)
            send_udp(port, data)

    t = threading.Thread(target=_run)
    t.start()
    return t


def poll_until(receiver, attempts: int = 200, interval: float = 0.01):
    """Poll *receiver* until a datagram arrives; None if it never does."""
    for _ in range(attempts):
        data = receiver.receive_nonblocking()
        if data is not None:
            return data
        time.sleep(interval)
    return None
