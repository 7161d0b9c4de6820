"""
Job-source side of the remote print worker.

- artifacts: downloads job documents into the local download folder
- connection: duplex connection lifecycle, inbound batch admission, reconnects
- status: best-effort status events back to the job source
"""

from .artifacts import ArtifactFetcher
from .connection import ConnectionManager, ConnectionState, WebSocketTransport
from .status import StatusReporter

__all__ = ["ArtifactFetcher", "ConnectionManager", "ConnectionState", "StatusReporter", "WebSocketTransport"]
