"""Background services for PaceBot."""

from pacebot.services.flusher import SnapshotFlusher

__all__ = ["SnapshotFlusher"]
