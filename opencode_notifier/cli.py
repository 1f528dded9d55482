"""
Command-line interface for opencode-notifier.

Usage:
    opencode-notifier run --config opencode-notifier.yaml -- opencode --model fast
    opencode-notifier events --directory . < events.jsonl
    opencode-notifier check --show
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
import yaml

from . import __version__
from .config import (
    NotifierConfig,
    load_config,
    resolve_workspace_name,
    validate_config,
)
from .discord import DeliveryAdapter, DiscordClient, DryRunDelivery
from .engine import NoopEngine, build_engine
from .eventlog import EventLog
from .exceptions import ConfigurationError
from .linewatch import LineNotifier
from .runner import ChildProcessRunner

logger = logging.getLogger(__name__)

config_option = click.option(
    "--config", "-c", "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: discovered under .opencode/ or the user config dir)",
)
profile_option = click.option(
    "--profile", "-p",
    default=None,
    help="Config profile to merge (from profiles.<name>)",
)
dry_run_option = click.option(
    "--dry-run",
    is_flag=True,
    help="Print payloads instead of calling Discord",
)


def setup_logging(verbose: bool, quiet: bool):
    """Configure logging based on verbosity.

    Args:
        verbose: Enable debug logging
        quiet: Suppress all but errors
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def line_delivery(config: NotifierConfig):
    if config.dry_run:
        return DryRunDelivery()
    return DeliveryAdapter(config, DiscordClient(config.discord.bot_token, config.discord.timeout_ms))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
def cli(verbose: bool, quiet: bool):
    """OpenCode notifier - Discord pings when the assistant needs you."""
    setup_logging(verbose, quiet)


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@config_option
@profile_option
@dry_run_option
@click.option("--once", is_flag=True, help="Send only the first notification")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def run(config_path: Optional[Path], profile: Optional[str], dry_run: bool, once: bool, command: tuple):
    """Wrap the assistant CLI and notify when it waits for input.

    Example:
        opencode-notifier run --config ./opencode-notifier.yaml
        opencode-notifier run --dry-run -- opencode --model fast
    """
    try:
        config = load_config(config_path, profile)
        if dry_run:
            config.dry_run = True
        if command:
            config.command.command = command[0]
            config.command.args = list(command[1:])
        for warning in validate_config(config, require_delivery=True):
            logger.warning(warning)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    notifier = LineNotifier(
        config,
        send=line_delivery(config).send_plain,
        event_log=EventLog(config.logging.directory),
        once=once,
    )

    try:
        code = ChildProcessRunner(config.command).run(notifier.handle_line)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    # Killed by signal N -> 128 + N, as a shell reports it
    raise SystemExit(code if code >= 0 else 128 - code)


@cli.command()
@config_option
@profile_option
@dry_run_option
@click.option(
    "--directory", "-d",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Session working directory (default: cwd)",
)
@click.option(
    "--worktree", "-w",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project worktree root (default: --directory)",
)
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
def events(
    config_path: Optional[Path],
    profile: Optional[str],
    dry_run: bool,
    directory: Optional[Path],
    worktree: Optional[Path],
    source,
):
    """Consume JSON-lines plugin events from SOURCE (default: stdin).

    Each line is one {"type", "properties", "timestampMs"} record.
    Configuration problems never stop the stream: events are then ignored.

    Example:
        opencode-notifier events --directory ~/code/app events.jsonl
    """
    try:
        config = load_config(config_path, profile, directory, worktree)
        if dry_run:
            config.dry_run = True
        for warning in validate_config(config):
            logger.warning(warning)
        engine = build_engine(config, workspace_name=resolve_workspace_name(directory, worktree))
    except ConfigurationError as e:
        logger.error(f"Invalid notifier config, events will be ignored: {e}")
        engine = NoopEngine()

    for number, line in enumerate(source, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError as e:
            logger.warning(f"Skipping line {number}: invalid JSON ({e})")
            continue
        engine.handle_event(record)


@cli.command()
@config_option
@profile_option
@click.option("--show", is_flag=True, help="Print the effective config (token masked)")
def check(config_path: Optional[Path], profile: Optional[str], show: bool):
    """Validate the config and show this machine's environment key.

    Example:
        opencode-notifier check --profile work --show
    """
    try:
        config = load_config(config_path, profile)
        warnings = validate_config(config)
    except ConfigurationError as e:
        click.echo(f"Config invalid: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Config: {config.source_path or '(defaults)'}")
    click.echo(f"Environment key: {config.environment.runtime_key}")
    click.echo(f"Environment label: {config.environment.label or '(not registered)'}")

    if warnings:
        click.echo("Warnings:")
        for warning in warnings:
            click.echo(f"  - {warning}")
    else:
        click.echo("Config OK")

    if show:
        click.echo()
        click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True))


def main():
    cli()


if __name__ == "__main__":
    main()
