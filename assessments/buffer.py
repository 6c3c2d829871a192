"""
Write-ahead buffer for session snapshots.

Every change is written here before it is sent to the server. While the
server is unreachable the buffer holds the latest unsent snapshot; once a
write is acknowledged the buffer is cleared. It is a replay queue of length
one, never a second source of truth.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class WriteAheadBuffer:
    def __init__(self, directory, candidate_id):
        self.path = Path(directory) / f"test-progress-{candidate_id}.json"

    def write(self, payload):
        """Atomically replace the buffered snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def pending(self):
        """The buffered snapshot, or None when everything has been sent."""
        if not self.path.exists():
            return None
        try:
            with self.path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unreadable progress buffer {self.path}")
            return None

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    @property
    def dirty(self):
        return self.path.exists()
