"""
Transport layer: the shared port and its reopen backoff policy.
"""

from batteryhub.transport.backoff import BackoffPolicy
from batteryhub.transport.port import DeviceType, Port

__all__ = ["BackoffPolicy", "DeviceType", "Port"]
