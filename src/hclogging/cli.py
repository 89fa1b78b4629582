"""CLI entry point for hclogging."""

import io
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from hclogging import __version__
from hclogging.client import PingClient
from hclogging.config import HookConfig, load_config, validate_config, default_config_path
from hclogging.errors import ConfigError, PingError
from hclogging.handler import HealthchecksHandler
from hclogging.hook import HeartbeatHook
from hclogging.logging_setup import setup_logging
from hclogging.models import Endpoint, LogEntry
from hclogging.translate import JOB_START_KEY, translate

_LEVEL_WORD_RE = re.compile(r"\b(CRITICAL|FATAL|ERROR|WARNING|WARN|INFO|DEBUG)\b")

_LEVEL_ALIASES = {"FATAL": "CRITICAL", "WARN": "WARNING"}


def _line_level(line: str) -> int:
    """Guess a logging level from the first upper-case level word in *line*."""
    match = _LEVEL_WORD_RE.search(line)
    if not match:
        return logging.INFO
    name = _LEVEL_ALIASES.get(match.group(1), match.group(1))
    return logging.getLevelNamesMapping()[name]


def _get_config(ctx) -> dict:
    """Load config using the path from context (or default). Exits on parse errors."""
    path = ctx.obj.get("config_path")
    if path:
        path = Path(path)
    try:
        return load_config(path)
    except ConfigError as e:
        _get_console(ctx).print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)


def _get_console(ctx) -> Console:
    """Create a Rich console respecting --no-color, with UTF-8 forced on Windows."""
    no_color = ctx.obj.get("no_color", False)
    # Force UTF-8 output to avoid Windows cp1252 encoding errors with Rich
    if sys.platform == "win32":
        out = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8", errors="replace")
        return Console(file=out, no_color=no_color, force_terminal=True)
    return Console(no_color=no_color, stderr=True)


@click.group()
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Path to config file.")
@click.option("--no-color", is_flag=True, help="Disable colored output.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def cli(ctx, config_path, no_color, verbose):
    """hclogging - Healthchecks.io heartbeats from your logs."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["no_color"] = no_color
    ctx.obj["verbose"] = verbose


@cli.command()
def version():
    """Show hclogging version."""
    click.echo(f"hclogging {__version__}")


@cli.command("validate")
@click.pass_context
def validate_cmd(ctx):
    """Validate the config file."""
    console = _get_console(ctx)
    cfg = _get_config(ctx)
    path = ctx.obj.get("config_path") or default_config_path()

    errors = validate_config(cfg)
    if errors:
        console.print(f"[red]\u2718[/red] {path}: {len(errors)} error(s)")
        for err in errors:
            console.print(f"  [red]-[/red] {escape(err)}")
        raise SystemExit(1)
    console.print(f"[green]\u2714[/green] {path} is valid")


@cli.command("ping")
@click.argument("check_id", required=False)
@click.option("--start", is_flag=True, help="Signal a job start.")
@click.option("--fail", is_flag=True, help="Mark the check as failed.")
@click.option("--message", "-m", default="manual ping", help="Message to send.")
@click.pass_context
def ping_cmd(ctx, check_id, start, fail, message):
    """Send a one-off ping to a check."""
    console = _get_console(ctx)
    if start and fail:
        console.print("[red]--start and --fail are mutually exclusive[/red]")
        raise SystemExit(2)
    cfg = _get_config(ctx)
    if check_id:
        cfg["check_id"] = check_id
    endpoint = Endpoint.FAIL if fail else Endpoint.START if start else Endpoint.PLAIN

    try:
        hook_cfg = HookConfig.from_dict(cfg)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    client = PingClient(hook_cfg.base_url, hook_cfg.check_id, hook_cfg.timeout)
    level = logging.ERROR if endpoint is Endpoint.FAIL else logging.INFO
    payload = translate(LogEntry(
        level=level,
        level_name=logging.getLevelName(level),
        message=message,
        time=datetime.now(timezone.utc),
        data={JOB_START_KEY: True} if start else {},
    ))
    try:
        client.send(endpoint, payload)
    except PingError as e:
        console.print(f"[red]\u2718[/red] {escape(str(e))}")
        raise SystemExit(1)
    console.print(f"[green]\u2714[/green] Pinged {client.url_for(endpoint)}")


@cli.command("watch")
@click.option("--check-id", default=None, help="Check to ping (overrides config).")
@click.option("--interval", default=None, help="Heartbeat period, e.g. 30s, 5m.")
@click.option("--fail-level", "fail_levels", multiple=True,
              help="Level that fails the check (repeatable).")
@click.option("--quiet", "-q", is_flag=True, help="Do not echo input lines.")
@click.pass_context
def watch_cmd(ctx, check_id, interval, fail_levels, quiet):
    """Forward a log stream on stdin to the check, one record per line.

    \b
    Usage:
      my-job 2>&1 | hclogging watch --check-id <uuid> --interval 5m
    """
    setup_logging(verbose=ctx.obj.get("verbose", False))
    console = _get_console(ctx)
    cfg = _get_config(ctx)
    if check_id:
        cfg["check_id"] = check_id
    if interval:
        cfg["interval"] = interval
    if fail_levels:
        cfg["fail_levels"] = list(fail_levels)

    try:
        hook = HeartbeatHook.from_config(cfg)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    stream_log = logging.getLogger("stdin")
    stream_log.setLevel(logging.DEBUG)
    stream_log.propagate = False
    handler = HealthchecksHandler(hook, owns_hook=True)
    stream_log.addHandler(handler)

    try:
        for line in sys.stdin:
            line = line.rstrip("\n")
            if not quiet:
                click.echo(line)
            if line.strip():
                stream_log.log(_line_level(line), line)
    except KeyboardInterrupt:
        pass
    finally:
        stream_log.removeHandler(handler)
        handler.close()

    if ctx.obj.get("verbose"):
        console.print(f"[dim]{hook.failed_pings} ping(s) failed.[/dim]")
