"""Tests for python -m xcwarden entry point."""
from __future__ import annotations

import subprocess
import sys


class TestMainModule:
    def test_module_imports_main(self) -> None:
        """__main__.py should import the cli main function."""
        import xcwarden.__main__ as m

        assert hasattr(m, "main")
        assert callable(m.main)

    def test_python_m_xcwarden_help(self) -> None:
        """python -m xcwarden --help should exit 0."""
        result = subprocess.run(
            [sys.executable, "-m", "xcwarden", "--help"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        assert result.returncode == 0
        assert "Usage" in result.stdout

    def test_python_m_xcwarden_log_help(self) -> None:
        """python -m xcwarden log --help lists the session subcommands."""
        result = subprocess.run(
            [sys.executable, "-m", "xcwarden", "log", "--help"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        assert result.returncode == 0
        for command in ("start", "stop", "tail", "list", "clean"):
            assert command in result.stdout
