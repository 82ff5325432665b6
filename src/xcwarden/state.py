"""Persistent state store for xcwarden.

A single JSON document (by default ~/.xcwarden/state.json) holds the session
counter and every tracked log session. Each CLI invocation is a separate
process, so the file is the only thing they share.

Writes go to a temporary file in the same directory which is then renamed
over the document, so readers only ever see a complete snapshot. Within one
process ``update`` calls are serialized by a lock. Across processes there is
no lock unless ``cross_process_lock`` is enabled: two invocations racing on
``update`` can both read the same snapshot and the later save wins.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from xcwarden.errors import StateFileError
from xcwarden.models import StateDocument, dumps_state, loads_state
from xcwarden.utils.process import is_process_alive

logger = logging.getLogger("xcwarden")

T = TypeVar("T")


class StateStore:
    """Atomic load-mutate-save access to the state document."""

    def __init__(
        self,
        path: str | os.PathLike,
        *,
        is_alive: Callable[[int], bool] = is_process_alive,
        cross_process_lock: bool = False,
    ):
        self.path = Path(path)
        self.is_alive = is_alive
        self.cross_process_lock = cross_process_lock
        self._lock = threading.Lock()

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def _ensure_directory(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StateFileError(f"cannot create {self.path.parent}: {exc}") from exc

    def load(self) -> StateDocument:
        """Return the stored document, or an empty one if none exists yet."""
        self._ensure_directory()
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StateDocument()
        except (OSError, UnicodeDecodeError) as exc:
            raise StateFileError(f"cannot read {self.path}: {exc}") from exc
        return loads_state(text)

    def _save(self, document: StateDocument) -> None:
        self._ensure_directory()
        payload = dumps_state(document)

        fd, temp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as exc:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StateFileError(f"cannot write {self.path}: {exc}") from exc

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        if not self.cross_process_lock:
            yield
            return

        import fcntl

        self._ensure_directory()
        with open(self.lock_path, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def update(self, mutator: Callable[[StateDocument], T]) -> T:
        """Load, apply ``mutator`` in place, save, and return its result.

        If the mutator raises, nothing is written.
        """
        with self._lock, self._file_lock():
            document = self.load()
            result = mutator(document)
            self._save(document)
            return result

    def clean_stale_sessions(self) -> list[str]:
        """Drop every session whose process is no longer alive.

        Returns the removed session names, sorted.
        """
        with self._lock, self._file_lock():
            document = self.load()
            stale = sorted(
                name for name, record in document.sessions.items()
                if not self.is_alive(record.pid)
            )
            if not stale:
                return []
            for name in stale:
                del document.sessions[name]
            self._save(document)

        logger.info("Removed %d stale session(s): %s", len(stale), ", ".join(stale))
        return stale
