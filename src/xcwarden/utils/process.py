"""External process helpers for xcwarden."""
from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from xcwarden.errors import ProcessExecutionFailed
from xcwarden.models import ProcessResult

logger = logging.getLogger("xcwarden")


def is_process_alive(pid: int) -> bool:
    """Check whether a pid still refers to a running process.

    Exited children of this process are reaped first, otherwise they would
    linger as zombies and keep answering signal 0.
    """
    if pid <= 0:
        return False
    try:
        reaped, _ = os.waitpid(pid, os.WNOHANG)
        if reaped == pid:
            return False
    except ChildProcessError:
        pass
    except OSError:
        logger.debug("waitpid(%d) failed", pid, exc_info=True)

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else.
        return True
    return True


class ProcessInvoker:
    """Runs external executables on behalf of the other components."""

    def execute(
        self,
        path: str,
        args: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        cwd: str | os.PathLike | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run a process to completion and capture its output."""
        command = [path, *args]
        merged_env = {**os.environ, **env} if env is not None else None
        logger.debug("exec: %s (cwd=%s)", " ".join(command), cwd)
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                env=merged_env,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProcessExecutionFailed(f"{path} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise ProcessExecutionFailed(f"could not run {path}: {exc}") from exc

        return ProcessResult(
            stdout=result.stdout.strip(),
            stderr=result.stderr.strip(),
            exit_code=result.returncode,
        )

    def execute_detached(
        self,
        path: str,
        args: Sequence[str],
        output_path: str | os.PathLike,
    ) -> subprocess.Popen:
        """Start a process that keeps running after we return.

        stdout and stderr both go to ``output_path``, which is truncated first.
        """
        output = Path(output_path)
        command = [path, *args]
        logger.debug("spawn: %s > %s", " ".join(command), output)
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "wb") as handle:
                return subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=handle,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as exc:
            raise ProcessExecutionFailed(f"could not start {path}: {exc}") from exc

    def find_executable(self, name: str) -> str | None:
        return shutil.which(name)

    def terminate(self, pid: int) -> bool:
        """Send SIGTERM. Returns False if the process was already gone.

        A pid owned by another user has been reused since the capture
        started, so it counts as gone too.
        """
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("pid %d already exited", pid)
            return False
        except PermissionError:
            logger.warning("pid %d belongs to another user, treating it as exited", pid)
            return False
        except OSError as exc:
            raise ProcessExecutionFailed(f"failed to signal pid {pid}: {exc}") from exc
        return True
