"""Modbus TCP client with cached process images, a polling command and a rate-monotonic scheduler."""

__version__ = "0.1.0"
__all__ = ["app", "client", "protocol", "scheduler"]