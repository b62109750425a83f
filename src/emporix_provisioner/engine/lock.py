"""Exclusive lock around the local state file."""

from __future__ import annotations

import fcntl
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from emporix_provisioner.engine.errors import StateLockError

if TYPE_CHECKING:
    from types import TracebackType


class StateLock:
    """``flock``-based lock on ``<state>.lock``, held for a whole plan/apply.

    With ``blocking=False`` a held lock raises ``StateLockError`` right away
    instead of waiting for the other run to finish.
    """

    def __init__(self, state_path: Path, *, blocking: bool = True) -> None:
        self._lock_path = Path(str(state_path) + ".lock")
        self._blocking = blocking
        self._file: TextIO | None = None

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    def __enter__(self) -> StateLock:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        # The descriptor stays open for as long as the lock is held.
        self._file = self._lock_path.open("a+", encoding="utf-8")
        flags = fcntl.LOCK_EX if self._blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(self._file.fileno(), flags)
        except OSError as e:
            self._file.close()
            self._file = None
            raise StateLockError(f"State is locked by another run ({self._lock_path}): {e}") from e
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
