"""Shared fakes for xcwarden tests."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from xcwarden.models import ProcessResult
from xcwarden.state import StateStore


@dataclass
class FakePopen:
    pid: int


@dataclass
class FakeInvoker:
    """Scripted stand-in for ProcessInvoker.

    ``responses`` maps the basename of the executable (or a tuple of
    basename + leading args) to a ProcessResult or a list of them consumed
    in order.
    """
    responses: dict = field(default_factory=dict)
    executables: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)
    detached: list = field(default_factory=list)
    terminated: list = field(default_factory=list)
    alive: set = field(default_factory=set)
    next_pid: int = 4000

    def _lookup(self, path: str, args: list[str]) -> ProcessResult:
        name = Path(path).name
        for key in ((name, *args[:2]), (name, *args[:1]), name):
            if key in self.responses:
                value = self.responses[key]
                if isinstance(value, list):
                    return value.pop(0)
                return value
        return ProcessResult(stdout="", stderr="", exit_code=0)

    def execute(self, path, args=(), env=None, cwd=None, timeout=None) -> ProcessResult:
        args = list(args)
        self.calls.append({"path": path, "args": args, "cwd": cwd})
        return self._lookup(path, args)

    def execute_detached(self, path, args, output_path) -> FakePopen:
        self.next_pid += 1
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text("", encoding="utf-8")
        self.detached.append({"path": path, "args": list(args), "output_path": str(output_path)})
        self.alive.add(self.next_pid)
        return FakePopen(pid=self.next_pid)

    def find_executable(self, name: str) -> str | None:
        return self.executables.get(name)

    def terminate(self, pid: int) -> bool:
        self.terminated.append(pid)
        if pid in self.alive:
            self.alive.discard(pid)
            return True
        return False

    def is_alive(self, pid: int) -> bool:
        return pid in self.alive

    def commands(self) -> list[tuple[str, ...]]:
        return [(Path(c["path"]).name, *c["args"]) for c in self.calls]


def _simctl_listing(*simulators: tuple[str, str, str], runtime: str = "com.apple.CoreSimulator.SimRuntime.iOS-17-2") -> str:
    """JSON shaped like ``simctl list devices -j``; entries are (udid, name, state)."""
    return json.dumps({
        "devices": {
            runtime: [{"udid": u, "name": n, "state": s} for u, n, s in simulators],
        }
    })


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def store(tmp_path, invoker) -> StateStore:
    return StateStore(tmp_path / "state" / "state.json", is_alive=invoker.is_alive)


@pytest.fixture
def simctl_listing():
    return _simctl_listing
