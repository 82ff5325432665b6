"""Plain-text and JSON output for CLI commands."""
from __future__ import annotations

import json

import click

from xcwarden.errors import XcwardenError


class Reporter:
    """Formats command results either for humans or as JSON."""

    def __init__(self, json_output: bool = False):
        self.json_output = json_output

    def format_success(self, payload: dict, text: str) -> str:
        if not self.json_output:
            return text
        return json.dumps({"success": True, **payload}, indent=2, sort_keys=True)

    def format_error(self, error: XcwardenError) -> str:
        if not self.json_output:
            return f"Error: {error.message}"
        return json.dumps({"success": False, "error": error.to_dict()}, indent=2, sort_keys=True)

    def success(self, payload: dict, text: str) -> None:
        click.echo(self.format_success(payload, text))

    def error(self, error: XcwardenError) -> None:
        # JSON consumers read stdout; humans get errors on stderr.
        click.echo(self.format_error(error), err=not self.json_output)
