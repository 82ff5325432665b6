"""Error kinds raised by xcwarden.

Every error carries a stable machine-readable code and a human message so the
CLI can report it either as plain text or as JSON.
"""
from __future__ import annotations


class XcwardenError(Exception):
    """Base class for all xcwarden errors."""

    code: str = "XCWARDEN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class MissingWorkspaceOrProject(XcwardenError):
    code = "MISSING_WORKSPACE_OR_PROJECT"

    def __init__(self) -> None:
        super().__init__("Exactly one of --workspace or --project must be specified")


class BuildFailed(XcwardenError):
    code = "BUILD_FAILED"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Build failed: {detail}")


class InvalidDestination(XcwardenError):
    code = "INVALID_DESTINATION"

    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(f"Invalid destination: {destination}")


class SimulatorNotFound(XcwardenError):
    code = "SIMULATOR_NOT_FOUND"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Simulator with name '{name}' not found")


class DeviceNotFound(XcwardenError):
    code = "DEVICE_NOT_FOUND"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Device with name '{name}' not found")


class AmbiguousTarget(XcwardenError):
    code = "AMBIGUOUS_TARGET"

    def __init__(self, name: str, matches: list[str]):
        self.name = name
        self.matches = list(matches)
        super().__init__(f"Ambiguous target name '{name}'. Matches: {', '.join(self.matches)}")


class SessionNotFound(XcwardenError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Session '{name}' not found")


class StateFileError(XcwardenError):
    code = "STATE_FILE_ERROR"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"State file error: {detail}")


class ProcessExecutionFailed(XcwardenError):
    code = "PROCESS_EXECUTION_FAILED"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Process execution failed: {detail}")


class InvalidConfiguration(XcwardenError):
    code = "INVALID_CONFIGURATION"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid configuration: {detail}")
