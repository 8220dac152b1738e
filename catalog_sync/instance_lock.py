"""Single-instance guard for the sync process.

The pid file is created with ``O_CREAT | O_EXCL`` so only one process can
win the race for it. A file left behind by a dead process is taken over.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

log = logging.getLogger("instance_lock")

# Пустой файл моложе этого значит, что другой процесс ещё пишет свой PID
EMPTY_FILE_GRACE_SECONDS = 5.0


class AlreadyRunningError(RuntimeError):
    """Another catalog sync process holds the pid file."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self.pid = pid
        message = "Catalog sync service is already running"
        if pid is not None:
            message = f"{message} (PID {pid})"
        super().__init__(message)


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class PidFileLock:
    def __init__(self, path: Path, *, attempts: int = 3) -> None:
        self.path = Path(path)
        self.attempts = attempts
        self.held = False

    def owner_pid(self) -> Optional[int]:
        try:
            raw = self.path.read_text().strip()
        except OSError:
            return None
        return int(raw) if raw.isdigit() else None

    def _create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as handle:
            handle.write(str(os.getpid()))
        return True

    def _is_stale(self, owner: Optional[int]) -> bool:
        if owner is not None:
            return owner == os.getpid() or not _pid_alive(owner)
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > EMPTY_FILE_GRACE_SECONDS

    def _remove_stale(self, owner: Optional[int]) -> None:
        # Удаляем только если файл не перехватили между проверкой и удалением
        if self.owner_pid() != owner:
            return
        log.warning("removing stale pid file %s (pid=%s)", self.path, owner)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(self.attempts):
            if self._create():
                self.held = True
                log.info("pid file %s acquired by %s", self.path, os.getpid())
                return
            owner = self.owner_pid()
            if not self._is_stale(owner):
                raise AlreadyRunningError(owner)
            self._remove_stale(owner)
        raise AlreadyRunningError(self.owner_pid())

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        if self.owner_pid() != os.getpid():
            log.warning("pid file %s no longer ours, leaving it", self.path)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self) -> "PidFileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
