"""Core models for xcwarden."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone

from xcwarden.errors import MissingWorkspaceOrProject, StateFileError

# Fixed-width UTC timestamps sort lexicographically in chronological order.
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

SESSION_PREFIX = "session-"


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with microseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def session_name(counter: int) -> str:
    return f"{SESSION_PREFIX}{counter}"


def session_number(name: str) -> int:
    """Return the counter value embedded in a session name, or -1."""
    suffix = name[len(SESSION_PREFIX):] if name.startswith(SESSION_PREFIX) else ""
    return int(suffix) if suffix.isdigit() else -1


@dataclass(frozen=True)
class SessionRecord:
    """A tracked background log capture process."""
    pid: int
    name: str
    target_id: str
    app_id: str
    log_path: str
    started_at: datetime

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "name": self.name,
            "target_udid": self.target_id,
            "bundle_id": self.app_id,
            "log_path": self.log_path,
            "start_time": format_timestamp(self.started_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SessionRecord:
        if not isinstance(data, dict):
            raise StateFileError("session record must be an object")
        try:
            pid = data["pid"]
            start_time = data["start_time"]
            values = {k: data[k] for k in ("name", "target_udid", "bundle_id", "log_path")}
        except KeyError as exc:
            raise StateFileError(f"session record is missing field {exc.args[0]!r}") from exc

        if not isinstance(pid, int) or isinstance(pid, bool):
            raise StateFileError(f"session record has non-integer pid: {pid!r}")
        for key, value in values.items():
            if not isinstance(value, str):
                raise StateFileError(f"session record field {key!r} must be a string")
        if not isinstance(start_time, str):
            raise StateFileError("session record field 'start_time' must be a string")
        try:
            started_at = parse_timestamp(start_time)
        except ValueError as exc:
            raise StateFileError(f"invalid start_time {start_time!r}") from exc

        return cls(
            pid=pid,
            name=values["name"],
            target_id=values["target_udid"],
            app_id=values["bundle_id"],
            log_path=values["log_path"],
            started_at=started_at,
        )


@dataclass
class StateDocument:
    """The persistent state shared by every xcwarden invocation.

    ``session_counter`` only ever grows; ``sessions`` maps session names to
    records believed live when they were last validated.
    """
    session_counter: int = 0
    sessions: dict[str, SessionRecord] = field(default_factory=dict)

    def next_session_name(self) -> str:
        """Advance the counter and return the name it reserves."""
        self.session_counter += 1
        return session_name(self.session_counter)

    def to_dict(self) -> dict:
        return {
            "global_session_counter": self.session_counter,
            "log_sessions": {name: record.to_dict() for name, record in self.sessions.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> StateDocument:
        if not isinstance(data, dict):
            raise StateFileError("state document must be a JSON object")
        counter = data.get("global_session_counter")
        raw_sessions = data.get("log_sessions")
        if not isinstance(counter, int) or isinstance(counter, bool) or counter < 0:
            raise StateFileError(f"invalid global_session_counter: {counter!r}")
        if not isinstance(raw_sessions, dict):
            raise StateFileError("log_sessions must be a JSON object")
        sessions = {name: SessionRecord.from_dict(raw) for name, raw in raw_sessions.items()}
        return cls(session_counter=counter, sessions=sessions)


def dumps_state(document: StateDocument) -> str:
    """Encode a state document as pretty-printed, key-sorted JSON."""
    return json.dumps(document.to_dict(), indent=2, sort_keys=True) + "\n"


def loads_state(text: str) -> StateDocument:
    """Decode a state document; malformed content raises StateFileError."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StateFileError(f"state file is not valid JSON: {exc}") from exc
    return StateDocument.from_dict(data)


@dataclass(frozen=True)
class Simulator:
    udid: str


@dataclass(frozen=True)
class Device:
    udid: str


# A resolved log/install/launch target.
Target = Simulator | Device


@dataclass(frozen=True)
class ProcessResult:
    """Captured output of a finished external process."""
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class BuildRequest:
    """A single build invocation."""
    scheme: str
    destination: str
    workspace: str | None = None
    project: str | None = None
    no_incremental: bool = False
    configuration: str | None = None

    def validate(self) -> None:
        if (self.workspace is None) == (self.project is None):
            raise MissingWorkspaceOrProject()

    @property
    def project_path(self) -> str:
        self.validate()
        return self.workspace if self.workspace is not None else self.project

    def xcode_arguments(self) -> list[str]:
        """Arguments shared by xcodebuild and xcodemake."""
        self.validate()
        args = ["-scheme", self.scheme, "-destination", self.destination]
        if self.workspace is not None:
            args.extend(["-workspace", self.workspace])
        else:
            args.extend(["-project", self.project])
        if self.configuration:
            args.extend(["-configuration", self.configuration])
        return args
