"""Log session lifecycle management.

A session is a detached log capture process (``simctl spawn ... log stream``
for simulators, ``devicectl device console`` for devices) writing into its
own file under the log directory. Sessions are tracked in the state store so
that a later invocation can stop, tail or list them.
"""
from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from xcwarden.devices import DeviceResolver
from xcwarden.errors import ProcessExecutionFailed, SessionNotFound
from xcwarden.models import Device, SessionRecord, Simulator, StateDocument, Target, session_number
from xcwarden.state import StateStore
from xcwarden.utils.process import ProcessInvoker

logger = logging.getLogger("xcwarden")


def capture_command(target: Target, app_id: str) -> list[str]:
    """xcrun arguments for a log capture scoped to exactly one target."""
    if isinstance(target, Simulator):
        return [
            "simctl", "spawn", target.udid, "log", "stream",
            "--predicate", f'subsystem == "{app_id}"',
        ]
    if isinstance(target, Device):
        return ["devicectl", "device", "console", "--device", target.udid, app_id]
    raise TypeError(f"unsupported target: {target!r}")


def last_lines(content: str, count: int) -> str:
    return "\n".join(content.splitlines()[-count:])


def follow_file(
    path: str | os.PathLike,
    stop_event: threading.Event | None = None,
    poll_interval: float = 0.25,
    initial_lines: int = 10,
) -> Iterator[str]:
    """Yield the last ``initial_lines`` lines of a file, then every new line.

    The existing content is read when this is called, not on first
    iteration, so anything written afterwards is followed. Runs until
    ``stop_event`` is set or the consumer closes the generator.
    """
    f = open(path, encoding="utf-8", errors="replace")
    try:
        existing = f.read().splitlines(keepends=True)
    except OSError:
        f.close()
        raise
    backlog = existing[-initial_lines:] if initial_lines > 0 else []
    return _follow(f, backlog, stop_event or threading.Event(), poll_interval)


def _follow(f, backlog: list[str], stop_event: threading.Event, poll_interval: float) -> Iterator[str]:
    with f:
        for line in backlog:
            yield line.rstrip("\n")

        partial = ""
        while not stop_event.is_set():
            chunk = f.readline()
            if not chunk:
                stop_event.wait(poll_interval)
                continue
            partial += chunk
            if partial.endswith("\n"):
                yield partial.rstrip("\n")
                partial = ""


class SessionManager:
    """Starts, stops, tails and lists log sessions."""

    def __init__(
        self,
        store: StateStore,
        invoker: ProcessInvoker,
        resolver: DeviceResolver,
        *,
        log_dir: str | os.PathLike,
        xcrun: str = "/usr/bin/xcrun",
        flush_delay: float = 0.5,
        tail_lines: int = 100,
    ):
        self.store = store
        self.invoker = invoker
        self.resolver = resolver
        self.log_dir = Path(log_dir)
        self.xcrun = xcrun
        self.flush_delay = flush_delay
        self.tail_lines = tail_lines

    def log_path_for(self, name: str) -> Path:
        return self.log_dir / f"{name}.log"

    def start(self, target_id: str, app_id: str) -> tuple[str, int]:
        """Start capturing logs for ``app_id`` on ``target_id``.

        Returns the new session name and the capture process id.
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)

        name = self.store.update(StateDocument.next_session_name)
        log_path = self.log_path_for(name)

        target = self.resolver.resolve_target(target_id)
        process = self.invoker.execute_detached(self.xcrun, capture_command(target, app_id), log_path)

        record = SessionRecord(
            pid=process.pid,
            name=name,
            target_id=target_id,
            app_id=app_id,
            log_path=str(log_path.resolve()),
            started_at=datetime.now(timezone.utc),
        )

        def _record(document: StateDocument) -> None:
            document.sessions[name] = record

        try:
            self.store.update(_record)
        except Exception:
            # Every running capture process must have a record.
            logger.warning("Could not record %s, terminating pid %d", name, process.pid)
            self.invoker.terminate(process.pid)
            raise
        logger.info("Started %s (pid %d) for %s on %s", name, process.pid, app_id, target_id)
        return name, process.pid

    def get(self, name: str) -> SessionRecord:
        record = self.store.load().sessions.get(name)
        if record is None:
            raise SessionNotFound(name)
        return record

    def stop(self, name: str, full: bool = False) -> str:
        """Terminate a session and return its captured log.

        Without ``full`` only the last ``tail_lines`` lines are returned.
        """
        record = self.get(name)

        if not self.invoker.terminate(record.pid):
            logger.info("%s: capture process %d had already exited", name, record.pid)

        # Give the capture process a moment to flush.
        if self.flush_delay > 0:
            time.sleep(self.flush_delay)

        try:
            content = Path(record.log_path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ProcessExecutionFailed(f"could not read log for {name}: {exc}") from exc

        def _remove(document: StateDocument) -> None:
            document.sessions.pop(name, None)

        self.store.update(_remove)
        logger.info("Stopped %s", name)

        return content if full else last_lines(content, self.tail_lines)

    def tail(
        self,
        name: str,
        stop_event: threading.Event | None = None,
        poll_interval: float = 0.25,
        initial_lines: int = 10,
    ) -> Iterator[str]:
        """Follow a session's log. The capture process keeps running afterwards."""
        record = self.get(name)
        log_path = Path(record.log_path)
        if not log_path.exists():
            raise ProcessExecutionFailed(f"log file for {name} does not exist: {log_path}")
        try:
            return follow_file(log_path, stop_event, poll_interval, initial_lines)
        except OSError as exc:
            raise ProcessExecutionFailed(f"could not read log for {name}: {exc}") from exc

    def list(self) -> list[SessionRecord]:
        """Active sessions, oldest first, after dropping stale ones."""
        self.clean_stale_sessions()
        records = self.store.load().sessions.values()
        return sorted(records, key=lambda r: (r.started_at, session_number(r.name)))

    def clean_stale_sessions(self) -> list[str]:
        return self.store.clean_stale_sessions()
