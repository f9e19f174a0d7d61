from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

logger = logging.getLogger(__name__)


class LockHeldError(RuntimeError):
    """Another process already holds the lockfile."""


class Lockfile:
    """Exclusive PID lockfile so at most one cycle runs at a time."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._held = False

    def acquire(self) -> "Lockfile":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            holder = self.path.read_text(encoding="utf-8").strip() or "unknown"
            raise LockHeldError(f"Lockfile {self.path} held by pid {holder}") from exc
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        self._held = True
        logger.debug("Acquired lock %s", self.path)
        return self

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("Lockfile %s vanished before release", self.path)
        self._held = False

    def __enter__(self) -> "Lockfile":
        return self.acquire()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()


def kill_switch_engaged(path: str) -> bool:
    return os.path.exists(path)
