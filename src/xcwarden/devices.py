"""Device and simulator resolution via simctl and devicectl."""
from __future__ import annotations

import json
import logging

from xcwarden.errors import (
    AmbiguousTarget,
    DeviceNotFound,
    InvalidDestination,
    ProcessExecutionFailed,
    SimulatorNotFound,
)
from xcwarden.models import Device, Simulator, Target
from xcwarden.utils.process import ProcessInvoker

logger = logging.getLogger("xcwarden")

_RUNTIME_PREFIX = "com.apple.CoreSimulator.SimRuntime."

_USABLE_SIMULATOR_STATES = {"Booted", "Shutdown"}


def parse_destination(destination: str) -> dict[str, str]:
    """Split an xcodebuild destination specifier into its key/value pairs."""
    components: dict[str, str] = {}
    for pair in destination.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip() and value.strip():
            components[key.strip()] = value.strip()
    return components


def _runtime_version(runtime: str) -> str:
    """com.apple.CoreSimulator.SimRuntime.iOS-17-2 -> iOS 17.2"""
    name = runtime.replace(_RUNTIME_PREFIX, "")
    platform, _, version = name.partition("-")
    return f"{platform} {version.replace('-', '.')}".strip()


class DeviceResolver:
    """Resolves destinations to UDIDs and installs/launches apps on them."""

    def __init__(self, invoker: ProcessInvoker, xcrun: str = "/usr/bin/xcrun"):
        self.invoker = invoker
        self.xcrun = xcrun

    def _xcrun_json(self, args: list[str], what: str):
        result = self.invoker.execute(self.xcrun, args)
        if not result.ok:
            raise ProcessExecutionFailed(f"Failed to list {what}: {result.stderr}")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ProcessExecutionFailed(f"Failed to parse {what} list") from exc

    def list_simulators(self) -> list[dict]:
        """Return simulators as dicts with udid, name, state and runtime."""
        data = self._xcrun_json(["simctl", "list", "devices", "-j"], "simulators")
        devices = data.get("devices") if isinstance(data, dict) else None
        if not isinstance(devices, dict):
            raise ProcessExecutionFailed("Failed to parse simulators list")

        simulators = []
        for runtime, entries in devices.items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                if "udid" not in entry or "name" not in entry:
                    continue
                simulators.append({
                    "udid": entry["udid"],
                    "name": entry["name"],
                    "state": entry.get("state", ""),
                    "runtime": _runtime_version(runtime),
                })
        return simulators

    def list_devices(self) -> list[dict]:
        """Return physical devices as dicts with udid and name."""
        data = self._xcrun_json(["devicectl", "list", "devices", "-j"], "devices")
        try:
            entries = data["result"]["devices"]
        except (KeyError, TypeError) as exc:
            raise ProcessExecutionFailed("Failed to parse devices list") from exc

        return [
            {"udid": entry["identifier"], "name": entry["name"]}
            for entry in entries
            if isinstance(entry, dict) and "identifier" in entry and "name" in entry
        ]

    def resolve_destination(self, destination: str) -> str:
        """Turn an xcodebuild destination into a concrete UDID."""
        components = parse_destination(destination)

        if "id" in components:
            return components["id"]

        platform = components.get("platform")
        name = components.get("name")
        if not platform or not name:
            raise InvalidDestination(destination)

        if "simulator" in platform.lower():
            return self._resolve_simulator(name, components.get("OS"))
        return self._resolve_device(name)

    def _resolve_simulator(self, name: str, os_version: str | None) -> str:
        matches = [
            sim for sim in self.list_simulators()
            if sim["name"] == name and sim["state"] in _USABLE_SIMULATOR_STATES
        ]
        if os_version and os_version != "latest":
            matches = [sim for sim in matches if sim["runtime"].endswith(f" {os_version}")]

        if not matches:
            raise SimulatorNotFound(name)
        if len(matches) > 1:
            raise AmbiguousTarget(name, [f"{m['name']} ({m['runtime']})" for m in matches])
        return matches[0]["udid"]

    def _resolve_device(self, name: str) -> str:
        matches = [dev for dev in self.list_devices() if dev["name"] == name]
        if not matches:
            raise DeviceNotFound(name)
        if len(matches) > 1:
            raise AmbiguousTarget(name, [f"{m['name']} ({m['udid']})" for m in matches])
        return matches[0]["udid"]

    def is_simulator_target(self, udid: str) -> bool:
        return any(sim["udid"] == udid for sim in self.list_simulators())

    def resolve_target(self, udid: str) -> Target:
        """Classify a UDID as a simulator or a physical device."""
        target = Simulator(udid) if self.is_simulator_target(udid) else Device(udid)
        logger.debug("Resolved %s as %s", udid, type(target).__name__.lower())
        return target

    def install_app(self, target: Target, app_path: str) -> None:
        if isinstance(target, Simulator):
            args = ["simctl", "install", target.udid, app_path]
        else:
            args = ["devicectl", "device", "install", "app", "--device", target.udid, app_path]
        result = self.invoker.execute(self.xcrun, args)
        if not result.ok:
            raise ProcessExecutionFailed(f"Failed to install app: {result.stderr}")

    def launch_app(self, target: Target, bundle_id: str) -> None:
        if isinstance(target, Simulator):
            args = ["simctl", "launch", target.udid, bundle_id]
        else:
            args = ["devicectl", "device", "process", "launch", "--device", target.udid, bundle_id]
        result = self.invoker.execute(self.xcrun, args)
        if not result.ok:
            raise ProcessExecutionFailed(f"Failed to launch app: {result.stderr}")
