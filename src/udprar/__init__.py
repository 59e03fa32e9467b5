"""udprar -- receive UDP datagrams, blocking or polled."""

from udprar.receiver import BindError, DatagramReceiver, ReadError, ReceiverError

__all__ = ["BindError", "DatagramReceiver", "ReadError", "ReceiverError"]
__version__ = "0.1.0"
