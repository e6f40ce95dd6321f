from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from causal_log.errors import ClockUnavailable
from causal_log.persistence.base import CounterStore


logger = logging.getLogger(__name__)


class FileCounterStore(CounterStore):
    """Counters kept as one small JSON file per replica.

    Every reservation is written to a temp file, fsynced, renamed over the
    previous file and the directory fsynced before the sequence number is
    handed out, so a crash can skip numbers but never reuse one.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)
        self._lock = threading.Lock()

    def reserve(self, replica_name: str) -> int:
        with self._lock:
            seq = self._read(replica_name)
            self._write(replica_name, seq + 1)
            return seq

    def peek(self, replica_name: str) -> int:
        with self._lock:
            return self._read(replica_name)

    def advance_to(self, replica_name: str, next_seq: int) -> None:
        with self._lock:
            current = self._read(replica_name)
            if next_seq > current:
                self._write(replica_name, next_seq)

    def _path(self, replica_name: str) -> Path:
        # Replica names are free-form; keep them out of the path structure.
        safe = "".join(c if c.isalnum() or c in "._-" else f"%{ord(c):02x}" for c in replica_name)
        return self._dir / f"{safe}.clock.json"

    def _read(self, replica_name: str) -> int:
        path = self._path(replica_name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return 0
        except OSError as exc:
            raise ClockUnavailable(replica_name, f"cannot read {path}: {exc}") from exc
        try:
            data = json.loads(raw)
            next_seq = data["next_seq"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ClockUnavailable(replica_name, f"corrupt counter file {path}") from exc
        if not isinstance(next_seq, int) or next_seq < 0 or data.get("replica") != replica_name:
            raise ClockUnavailable(replica_name, f"corrupt counter file {path}")
        return next_seq

    def _write(self, replica_name: str, next_seq: int) -> None:
        path = self._path(replica_name)
        payload = json.dumps({"replica": replica_name, "next_seq": next_seq})
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".clock-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
            self._fsync_dir()
        except OSError as exc:
            logger.error("clock persist failed", extra={"replica": replica_name, "seq": next_seq})
            raise ClockUnavailable(replica_name, f"cannot persist {path}: {exc}") from exc

    def _fsync_dir(self) -> None:
        # The rename is only durable once the directory entry is flushed.
        fd = os.open(self._dir, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
