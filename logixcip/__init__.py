"""EtherNet/IP and CIP client primitives, tag paths and L5X tag loading for Logix controllers."""

__version__ = "0.1.0"

__all__ = ["cip", "client", "connection", "device_type", "errors", "ioi", "items", "l5x"]