"""Click-based CLI entrypoint for git-cors-proxy.

Commands:
    start   Start the CORS proxy server (``-p`` port, ``-d`` daemonize)
    stop    Stop the server recorded in the pid file

Unknown commands print the usage text instead of failing.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from pathlib import Path

import click

from git_cors_proxy.constants import DEFAULT_PORT, PID_FILE_NAME
from git_cors_proxy.errors import ConfigError

USAGE = f"""
Usage: git-cors-proxy [command] [options]

Commands:
  start     Start the CORS proxy server
  stop      Stop the CORS proxy server

Options:
  -p        Port to listen on (default: {DEFAULT_PORT})
  -d        Run as a daemon
"""


def pid_file_path() -> Path:
    """Location of the pid file (current working directory)."""
    return Path.cwd() / PID_FILE_NAME


# ---------------------------------------------------------------------------
# Custom Click Group
# ---------------------------------------------------------------------------


class ProxyGroup(click.Group):
    """Click group that answers unknown commands with the usage text."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        if args and self.get_command(ctx, args[0]) is None:
            click.echo(USAGE)
            ctx.exit(0)
        return super().resolve_command(ctx, args)


@click.group(cls=ProxyGroup, invoke_without_command=True)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """git-cors-proxy - CORS proxy for browser Git clients."""
    if ctx.invoked_subcommand is None:
        click.echo(USAGE)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _daemonize(port: int) -> int:
    """Re-launch ``start`` detached in a new session; return the child pid."""
    process = subprocess.Popen(
        [sys.executable, "-m", "git_cors_proxy.cli", "start", "-p", str(port)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        cwd=os.getcwd(),
        start_new_session=True,
        close_fds=True,
    )
    return process.pid


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt


@cli.command()
@click.option("-p", "--port", type=int, default=DEFAULT_PORT, show_default=True,
              help="Port to listen on.")
@click.option("-d", "--daemon", is_flag=True, default=False, help="Run as a daemon.")
def start(port: int, daemon: bool) -> None:
    """Start the CORS proxy server."""
    from git_cors_proxy.app import create_app
    from git_cors_proxy.logging_config import setup_logging
    from git_cors_proxy.server import create_server, serve

    if daemon:
        pid = _daemonize(port)
        click.echo(f"CORS proxy server starting in background (PID: {pid})")
        return

    setup_logging()
    try:
        server = create_server(create_app(), port)
    except ConfigError as e:
        click.echo(f"Error starting server: {e}", err=True)
        sys.exit(1)

    pid_path = pid_file_path()
    pid_path.write_text(str(os.getpid()), encoding="utf-8")
    click.echo(f"CORS proxy server listening on port {port}")

    # SIGTERM (from ``stop``) shuts down the same way as Ctrl-C
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        serve(server)
    except KeyboardInterrupt:
        pass
    finally:
        pid_path.unlink(missing_ok=True)


def _kill_tree(pid: int) -> None:
    """Terminate ``pid`` and, when it leads its own process group, the group."""
    pgid = os.getpgid(pid)
    if pgid == pid:
        os.killpg(pgid, signal.SIGTERM)
    else:
        os.kill(pid, signal.SIGTERM)


@cli.command()
def stop() -> None:
    """Stop the CORS proxy server."""
    pid_path = pid_file_path()
    try:
        raw_pid = pid_path.read_text(encoding="utf-8").strip()
    except OSError:
        click.echo(f"No {PID_FILE_NAME} file found or error reading it", err=True)
        return

    try:
        pid = int(raw_pid)
    except ValueError:
        click.echo(f"Invalid PID in {PID_FILE_NAME}", err=True)
        return

    click.echo(f"Stopping CORS proxy server (PID: {pid})...")
    try:
        _kill_tree(pid)
    except OSError as e:
        click.echo(f"Error stopping server: {e}", err=True)
        return

    click.echo("CORS proxy server stopped")
    pid_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------


def main() -> None:
    """Entry point for the ``git-cors-proxy`` console script."""
    cli()


if __name__ == "__main__":
    main()
