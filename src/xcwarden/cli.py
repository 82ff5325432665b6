"""xcwarden CLI entry point."""
from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import click

from xcwarden import __version__
from xcwarden.build import BuildEngine
from xcwarden.config import WardenConfig, load_config
from xcwarden.devices import DeviceResolver
from xcwarden.errors import BuildFailed, InvalidConfiguration, ProcessExecutionFailed, XcwardenError
from xcwarden.models import BuildRequest
from xcwarden.reporter import Reporter
from xcwarden.sessions import SessionManager
from xcwarden.state import StateStore
from xcwarden.utils.process import ProcessInvoker, is_process_alive
from xcwarden.workflow import run_app

logger = logging.getLogger("xcwarden")


def _configure_logging() -> None:
    level = os.environ.get("XCWARDEN_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )


def _make_invoker() -> ProcessInvoker:
    return ProcessInvoker()


def _make_session_manager(config: WardenConfig) -> SessionManager:
    invoker = _make_invoker()
    store = StateStore(
        config.state_file,
        is_alive=is_process_alive,
        cross_process_lock=config.cross_process_lock,
    )
    return SessionManager(
        store,
        invoker,
        DeviceResolver(invoker, xcrun=config.xcrun),
        log_dir=config.log_dir,
        xcrun=config.xcrun,
        flush_delay=config.flush_delay,
        tail_lines=config.tail_lines,
    )


def _make_build_engine(config: WardenConfig) -> BuildEngine:
    return BuildEngine(_make_invoker(), marker_name=config.marker_name, xcodebuild=config.xcodebuild)


@contextmanager
def _reporting(reporter: Reporter, wrap: type[XcwardenError] = ProcessExecutionFailed) -> Iterator[None]:
    """Report failures through ``reporter`` and exit 1."""
    try:
        yield
    except XcwardenError as exc:
        reporter.error(exc)
        sys.exit(1)
    except Exception as exc:
        logger.debug("Unexpected error", exc_info=True)
        reporter.error(wrap(str(exc)))
        sys.exit(1)


json_option = click.option("--json", "json_output", is_flag=True, help="Output in JSON format")

build_options = [
    click.option("--scheme", required=True, help="The scheme to build"),
    click.option("--destination", required=True, help="Destination, e.g. 'platform=iOS Simulator,name=iPhone 15' or 'id=UDID'"),
    click.option("--workspace", default=None, help="Path to the .xcworkspace"),
    click.option("--project", default=None, help="Path to the .xcodeproj"),
    click.option("--configuration", default=None, help="Build configuration, e.g. Debug"),
]


def _with_build_options(func):
    for option in reversed(build_options):
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="xcwarden")
def main():
    """xcwarden - incremental Xcode builds and background log sessions."""
    _configure_logging()


@main.command()
@_with_build_options
@click.option("--no-incremental", is_flag=True, help="Skip xcodemake and the build marker; always run xcodebuild")
@json_option
def build(scheme, destination, workspace, project, configuration, no_incremental, json_output):
    """Build a project or workspace, incrementally when possible."""
    reporter = Reporter(json_output)
    with _reporting(reporter, wrap=BuildFailed):
        request = BuildRequest(
            scheme=scheme,
            destination=destination,
            workspace=workspace,
            project=project,
            no_incremental=no_incremental,
            configuration=configuration,
        )
        outcome = _make_build_engine(load_config()).build(request)
        outcome.raise_for_status()
        reporter.success(
            {"message": "Build succeeded", "build_strategy": outcome.strategy.value},
            f"Build succeeded ({outcome.strategy.value})",
        )


@main.command()
@_with_build_options
@json_option
def run(scheme, destination, workspace, project, configuration, json_output):
    """Build, install and launch an app."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        config = load_config()
        request = BuildRequest(
            scheme=scheme,
            destination=destination,
            workspace=workspace,
            project=project,
            configuration=configuration,
        )
        invoker = _make_invoker()
        engine = BuildEngine(invoker, marker_name=config.marker_name, xcodebuild=config.xcodebuild)
        result = run_app(engine, DeviceResolver(invoker, xcrun=config.xcrun), request)
        reporter.success(
            result.to_dict(),
            f"Successfully built and launched {result.app_path}\n"
            f"Bundle ID: {result.bundle_id}\n"
            f"Target: {result.target_id}",
        )


@main.group()
def log():
    """Manage background log sessions."""


@log.command("start")
@click.option("--udid", required=True, help="UDID of the target device or simulator")
@click.option("--bundle-id", required=True, help="Bundle identifier to capture logs for")
@json_option
def log_start(udid, bundle_id, json_output):
    """Start a new log session."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        name, pid = _make_session_manager(load_config()).start(udid, bundle_id)
        reporter.success(
            {"session_name": name, "pid": pid},
            f"Started log session: {name} (PID: {pid})",
        )


@log.command("stop")
@click.argument("session_name")
@click.option("--full", is_flag=True, help="Print the full log instead of the last lines")
@json_option
def log_stop(session_name, full, json_output):
    """Stop a log session and print its logs."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        content = _make_session_manager(load_config()).stop(session_name, full=full)
        reporter.success({"log_content": content}, content)


@log.command("tail")
@click.argument("session_name")
@json_option
def log_tail(session_name, json_output):
    """Stream a session's log until interrupted."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        if json_output:
            raise InvalidConfiguration("JSON output not supported for tail command")
        lines = _make_session_manager(load_config()).tail(session_name)
        try:
            for line in lines:
                click.echo(line)
        except KeyboardInterrupt:
            pass
        finally:
            lines.close()


@log.command("list")
@json_option
def log_list(json_output):
    """List active log sessions."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        sessions = _make_session_manager(load_config()).list()
        if sessions:
            text = "Active log sessions:\n" + "\n".join(
                f"  {s.name} - PID: {s.pid}, Bundle: {s.app_id}, Target: {s.target_id}"
                for s in sessions
            )
        else:
            text = "No active log sessions"
        payload = [
            {"name": s.name, "pid": s.pid, "bundle_id": s.app_id, "target_udid": s.target_id}
            for s in sessions
        ]
        reporter.success({"active_sessions": payload}, text)


@log.command("clean")
@json_option
def log_clean(json_output):
    """Remove sessions whose capture process has exited."""
    reporter = Reporter(json_output)
    with _reporting(reporter):
        removed = _make_session_manager(load_config()).clean_stale_sessions()
        reporter.success(
            {"message": "Stale sessions cleaned", "removed": removed},
            f"Cleaned up {len(removed)} stale log session(s)",
        )


if __name__ == "__main__":
    main()
