"""Incremental build decision engine.

Decides per build whether an ``xcodemake``-generated Makefile can be used
instead of a full ``xcodebuild``. A zero-byte marker file beside the project
records when the last incremental build succeeded; only its mtime matters.

Order of attempts:

1. run ``make`` with an existing Makefile (touch marker on success, delete it
   on failure);
2. regenerate the Makefile with ``xcodemake`` and run ``make`` once more;
3. fall back to ``xcodebuild build``, whose result is returned as-is.

``no_incremental`` skips straight to step 3.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from xcwarden.errors import BuildFailed
from xcwarden.models import BuildRequest, ProcessResult
from xcwarden.utils.process import ProcessInvoker

logger = logging.getLogger("xcwarden")

MAKEFILE_NAME = "Makefile"


class BuildStrategy(Enum):
    """How a build result was produced."""
    INCREMENTAL = "incremental"
    REGENERATED = "regenerated"
    FULL = "full"


@dataclass(frozen=True)
class BuildOutcome:
    result: ProcessResult
    strategy: BuildStrategy
    marker_fresh: bool | None = None

    @property
    def succeeded(self) -> bool:
        return self.result.ok

    def raise_for_status(self) -> None:
        if not self.result.ok:
            raise BuildFailed(self.result.stderr or self.result.stdout or f"exit code {self.result.exit_code}")


def newest_mtime(root: Path) -> float | None:
    """Most recent mtime of any non-hidden file under ``root``.

    Hidden files and directories are skipped. Entries whose metadata cannot
    be read are ignored. Returns None when nothing could be inspected.
    """
    if not root.is_dir():
        try:
            return root.stat().st_mtime
        except OSError:
            return None

    newest = None
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for filename in filenames:
            if filename.startswith("."):
                continue
            try:
                mtime = os.stat(os.path.join(dirpath, filename)).st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest:
                newest = mtime
    return newest


class BuildEngine:
    """Chooses between the incremental fast path and a full xcodebuild."""

    def __init__(
        self,
        invoker: ProcessInvoker,
        *,
        marker_name: str = ".xcwarden.rc",
        xcodebuild: str = "/usr/bin/xcodebuild",
        helper_name: str = "xcodemake",
        make_name: str = "make",
    ):
        self.invoker = invoker
        self.marker_name = marker_name
        self.xcodebuild = xcodebuild
        self.helper_name = helper_name
        self.make_name = make_name

    # -- marker ---------------------------------------------------------

    def marker_path(self, project_path: str | os.PathLike) -> Path:
        return Path(project_path).parent / self.marker_name

    def touch_marker(self, project_path: str | os.PathLike) -> None:
        marker = self.marker_path(project_path)
        try:
            marker.touch()
        except OSError as exc:
            logger.warning("Could not write build marker %s: %s", marker, exc)

    def clear_marker(self, project_path: str | os.PathLike) -> None:
        marker = self.marker_path(project_path)
        try:
            marker.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove build marker %s: %s", marker, exc)

    def is_fresh(self, project_path: str | os.PathLike) -> bool:
        """True if the marker exists and no tracked file is newer than it."""
        try:
            marker_mtime = self.marker_path(project_path).stat().st_mtime
        except OSError:
            return False
        newest = newest_mtime(Path(project_path))
        return newest is None or newest <= marker_mtime

    # -- build ----------------------------------------------------------

    def build(self, request: BuildRequest) -> BuildOutcome:
        request.validate()
        project_path = request.project_path

        if request.no_incremental:
            logger.info("Incremental build disabled, running xcodebuild")
            return BuildOutcome(self._xcodebuild(request), BuildStrategy.FULL)

        fresh = self.is_fresh(project_path)
        logger.debug("Build marker for %s is %s", project_path, "fresh" if fresh else "stale")

        project_dir = Path(project_path).parent
        if (project_dir / MAKEFILE_NAME).is_file():
            result = self._make(project_dir)
            if result.ok:
                self.touch_marker(project_path)
                return BuildOutcome(result, BuildStrategy.INCREMENTAL, fresh)
            logger.info("make failed (exit %d), regenerating Makefile", result.exit_code)
            self.clear_marker(project_path)

        helper = self.invoker.find_executable(self.helper_name)
        if helper:
            generated = self.invoker.execute(helper, request.xcode_arguments(), cwd=project_dir)
            if generated.ok:
                result = self._make(project_dir)
                if result.ok:
                    self.touch_marker(project_path)
                    return BuildOutcome(result, BuildStrategy.REGENERATED, fresh)
                logger.info("make failed after regeneration (exit %d)", result.exit_code)
                self.clear_marker(project_path)
            else:
                logger.warning("%s failed (exit %d): %s", self.helper_name, generated.exit_code, generated.stderr)
        else:
            logger.debug("%s not found on PATH", self.helper_name)

        return BuildOutcome(self._xcodebuild(request), BuildStrategy.FULL, fresh)

    def _make(self, directory: Path) -> ProcessResult:
        make = self.invoker.find_executable(self.make_name) or "/usr/bin/make"
        return self.invoker.execute(make, cwd=directory)

    def _xcodebuild(self, request: BuildRequest) -> ProcessResult:
        return self.invoker.execute(self.xcodebuild, ["build", *request.xcode_arguments()])

    def get_build_settings(self, request: BuildRequest) -> dict[str, str]:
        """Run ``xcodebuild -showBuildSettings`` and parse ``KEY = value`` lines."""
        result = self.invoker.execute(self.xcodebuild, ["-showBuildSettings", *request.xcode_arguments()])
        if not result.ok:
            raise BuildFailed(f"Failed to get build settings: {result.stderr}")
        return parse_build_settings(result.stdout)


def parse_build_settings(output: str) -> dict[str, str]:
    settings: dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if " = " not in line:
            continue
        key, _, value = line.partition("=")
        settings[key.strip()] = value.strip()
    return settings
