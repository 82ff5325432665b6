"""Tests for CLI output formatting."""
from __future__ import annotations

import json

from xcwarden.errors import SessionNotFound
from xcwarden.reporter import Reporter


class TestPlain:
    def test_success_is_text(self):
        assert Reporter().format_success({"session_name": "session-1"}, "Started") == "Started"

    def test_error_has_prefix(self):
        assert Reporter().format_error(SessionNotFound("session-2")) == "Error: Session 'session-2' not found"


class TestJson:
    def test_success_payload(self):
        out = json.loads(Reporter(json_output=True).format_success({"session_name": "session-1"}, "ignored"))
        assert out == {"success": True, "session_name": "session-1"}

    def test_error_payload(self):
        out = json.loads(Reporter(json_output=True).format_error(SessionNotFound("session-2")))
        assert out == {
            "success": False,
            "error": {"code": "SESSION_NOT_FOUND", "message": "Session 'session-2' not found"},
        }

    def test_keys_are_sorted(self):
        text = Reporter(json_output=True).format_success({"b": 1, "a": 2}, "")
        assert text.index('"a"') < text.index('"b"') < text.index('"success"')
