"""
Remote blob service access.
"""

from kvfs.remote.transport import MAX_ATTEMPTS, RemoteTransport

__all__ = ["MAX_ATTEMPTS", "RemoteTransport"]
