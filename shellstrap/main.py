"""
shellstrap — CLI entrypoint.

Usage:
    shellstrap --help
    shellstrap install [--check] [--force]
    shellstrap status
    shellstrap uv create scratch 3.12
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

import click

from shellstrap import __version__
from shellstrap.core.observability.logging_config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="shellstrap")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: ~/.config/shellstrap/config.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """shellstrap — user-space shell environment bootstrapper."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("SHELLSTRAP_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("SHELLSTRAP_LOG_FILE"),
        log_file_level=os.environ.get("SHELLSTRAP_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _load_config(ctx: click.Context):
    from shellstrap.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"[x] {e}", fg="red", err=True)
        sys.exit(1)


def _tools(ctx: click.Context):
    from shellstrap.adapters import Toolbox

    tools = ctx.obj.get("tools")
    if tools is None:
        tools = Toolbox()
        ctx.obj["tools"] = tools
    return tools


def _warn_if_root() -> None:
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        logger.warning("Running as root is not recommended.")


# ── install / check ─────────────────────────────────────────────


def _print_check(ctx: click.Context, force: bool, as_json: bool) -> None:
    from shellstrap.core.use_cases.check import run_check

    result = run_check(_load_config(ctx), _tools(ctx), force=force)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    for line in result.render():
        click.echo(line)
    click.echo()
    if result.would_run:
        click.secho(f"Would run full install (version {result.current_version}).", fg="cyan")
    else:
        click.secho(
            f"Version {result.current_version} is already installed. Use --force to re-run.",
            fg="green",
        )


@cli.command(context_settings=dict(ignore_unknown_options=True, allow_extra_args=True))
@click.option("--check", "check_mode", is_flag=True, help="Dry run: report what would change.")
@click.option("--force", is_flag=True, help="Re-run even if this version is installed.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, check_mode: bool, force: bool, as_json: bool) -> None:
    """Install or upgrade the shell environment."""
    for extra in ctx.args:
        logger.warning("Unknown argument: %s (ignored)", extra)
    _warn_if_root()

    if check_mode:
        logger.info("Running in --check mode (dry run)")
        _print_check(ctx, force, as_json)
        return

    from shellstrap.core.errors import FatalPrecondition
    from shellstrap.core.use_cases.install import run_install

    config = _load_config(ctx)
    try:
        result = run_install(config, _tools(ctx), force=force)
    except FatalPrecondition as e:
        click.secho(f"[x] {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    report = result.report
    if report is not None and not ctx.obj.get("quiet"):
        click.echo()
        for receipt in report.receipts:
            icon = {"ok": "✓", "failed": "✗", "skipped": "⊘"}[receipt.status]
            color = {"ok": "green", "failed": "red", "skipped": "yellow"}[receipt.status]
            click.secho(f"   {icon} {receipt.step}", fg=color, nl=False)
            detail = receipt.error if receipt.failed else receipt.output
            click.echo(f"  {detail}" if detail else "")
        click.echo()
        for line in result.summary_lines():
            click.echo(line)

    sys.exit(result.exit_code)


@cli.command()
@click.option("--force", is_flag=True, help="Report as if --force were given.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, force: bool, as_json: bool) -> None:
    """Report what an install would do (same as install --check)."""
    _print_check(ctx, force, as_json)


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show installed vs. current version and the last run."""
    from shellstrap.core.use_cases.status import get_status

    result = get_status(_load_config(ctx))
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(f"Installed version: {result.installed_version or 'none'}")
    click.echo(f"Current version:   {result.current_version}")
    if result.up_to_date:
        click.secho("Up to date.", fg="green")
    else:
        click.secho("Install pending: run `shellstrap install`.", fg="yellow")

    run = result.last_run
    if run is not None:
        color = {"ok": "green", "partial": "yellow", "failed": "red", "aborted": "red"}.get(run.status, "white")
        click.echo(f"Last run: {run.operation_id} — ", nl=False)
        click.secho(run.status, fg=color, nl=False)
        click.echo(
            f" ({run.steps_succeeded}/{run.steps_total} ok, {run.steps_failed} failed) at {run.timestamp}"
        )


# ── handoff ─────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--interactive/--non-interactive",
    default=None,
    help="Override terminal detection.",
)
@click.option("--shell", "target_shell", default="zsh", show_default=True, help="Shell to hand off to.")
@click.option("--dry-run", is_flag=True, help="Only print the decision.")
def handoff(interactive: bool | None, target_shell: str, dry_run: bool) -> None:
    """Continue this session in zsh (no chsh needed)."""
    from shellstrap.core.services.handoff import ShellHandoffController

    controller = ShellHandoffController(target_shell=target_shell)
    if dry_run:
        decision = controller.evaluate(interactive)
    else:
        decision = controller.handoff(interactive)

    if decision.will_handoff:
        click.echo(f"handoff: {' '.join(decision.argv)}")
    else:
        click.echo(f"stay: {decision.reason}")


# ── uv venv wrapper ─────────────────────────────────────────────


@cli.command(
    context_settings=dict(ignore_unknown_options=True, allow_interspersed_args=False),
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def uv(ctx: click.Context, args: tuple[str, ...]) -> None:
    """Named uv venvs: activate, deactivate, create, rm, env list|path."""
    from shellstrap.core.services.venv_wrapper import VenvWrapper

    config = _load_config(ctx)
    wrapper = VenvWrapper(
        base=config.shared_base / ".uv_venv",
        runner=_tools(ctx).runner,
        echo=click.echo,
        confirm=lambda prompt: click.confirm(prompt, default=False),
    )
    sys.exit(wrapper.dispatch(list(args)))


if __name__ == "__main__":
    cli()
