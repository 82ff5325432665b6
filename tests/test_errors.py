"""Tests for error codes and messages."""
from __future__ import annotations

import pytest

from xcwarden.errors import (
    AmbiguousTarget,
    BuildFailed,
    DeviceNotFound,
    InvalidConfiguration,
    InvalidDestination,
    MissingWorkspaceOrProject,
    ProcessExecutionFailed,
    SessionNotFound,
    SimulatorNotFound,
    StateFileError,
    XcwardenError,
)


@pytest.mark.parametrize("error, code", [
    (MissingWorkspaceOrProject(), "MISSING_WORKSPACE_OR_PROJECT"),
    (BuildFailed("linker error"), "BUILD_FAILED"),
    (InvalidDestination("bogus"), "INVALID_DESTINATION"),
    (SimulatorNotFound("iPhone 99"), "SIMULATOR_NOT_FOUND"),
    (DeviceNotFound("My Phone"), "DEVICE_NOT_FOUND"),
    (AmbiguousTarget("iPhone 15", ["a", "b"]), "AMBIGUOUS_TARGET"),
    (SessionNotFound("session-9"), "SESSION_NOT_FOUND"),
    (StateFileError("truncated"), "STATE_FILE_ERROR"),
    (ProcessExecutionFailed("no such file"), "PROCESS_EXECUTION_FAILED"),
    (InvalidConfiguration("bad value"), "INVALID_CONFIGURATION"),
])
def test_codes_are_stable(error, code):
    assert isinstance(error, XcwardenError)
    assert error.code == code
    assert error.to_dict() == {"code": code, "message": error.message}
    assert error.message


class TestMessages:
    def test_session_not_found(self):
        assert SessionNotFound("session-3").message == "Session 'session-3' not found"

    def test_build_failed_keeps_detail(self):
        err = BuildFailed("exit 65")
        assert err.detail == "exit 65"
        assert "exit 65" in str(err)

    def test_ambiguous_target_lists_matches(self):
        err = AmbiguousTarget("iPhone 15", ["iPhone 15 (iOS 17.0)", "iPhone 15 (iOS 17.2)"])
        assert "iPhone 15 (iOS 17.0), iPhone 15 (iOS 17.2)" in err.message
        assert err.matches == ["iPhone 15 (iOS 17.0)", "iPhone 15 (iOS 17.2)"]
