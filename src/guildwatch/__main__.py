#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - CLI Entry Point
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Command-line interface for GuildWatch.

Features:
- Structured logging (console + rotating file)
- Configuration check
- Dry-run poll cycle without Discord
- Long-running Discord bot
"""

import asyncio
import logging
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import click

from .config import get_config
from .errors import StoreError
from .scheduler import LoggingSink, PollScheduler
from .store import GuildStore

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING SETUP
# ══════════════════════════════════════════════════════════════════════════════


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    quiet: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: Enable DEBUG level
        log_file: Path to log file
        quiet: Suppress console output
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()

    fmt = "%(asctime)s [%(levelname)-.1s] %(name)s: %(message)s"
    formatter = logging.Formatter(fmt, "%H:%M:%S")

    if not quiet:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG if verbose else logging.INFO)
        console.setFormatter(formatter)
        root.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"))
        root.addHandler(file_handler)

    # discord.py is chatty at DEBUG
    logging.getLogger("discord").setLevel(logging.INFO)


# ══════════════════════════════════════════════════════════════════════════════
# CONSOLE OUTPUT HELPERS
# ══════════════════════════════════════════════════════════════════════════════


class Console:
    """Simple console output with status indicators."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    CYAN = "\033[36m"

    @classmethod
    def _color(cls, text: str, color: str) -> str:
        if not sys.stdout.isatty():
            return text
        return f"{color}{text}{cls.RESET}"

    @classmethod
    def header(cls, text: str) -> None:
        line = "=" * 60
        click.echo(cls._color(line, cls.CYAN))
        click.echo(cls._color(f"  {text}", cls.BOLD + cls.CYAN))
        click.echo(cls._color(line, cls.CYAN))

    @classmethod
    def success(cls, text: str) -> None:
        click.echo(f"  {cls._color('[OK]', cls.GREEN)} {text}")

    @classmethod
    def warning(cls, text: str) -> None:
        click.echo(f"  {cls._color('[!]', cls.YELLOW)} {text}")

    @classmethod
    def error(cls, text: str) -> None:
        click.echo(f"  {cls._color('[X]', cls.RED)} {text}")

    @classmethod
    def info(cls, text: str) -> None:
        click.echo(f"  {cls._color('*', cls.DIM)} {text}")


# ══════════════════════════════════════════════════════════════════════════════
# CLI
# ══════════════════════════════════════════════════════════════════════════════


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose (debug) output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress console output")
@click.option("--log-file", type=click.Path(path_type=Path), help="Path to log file")
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool, log_file: Optional[Path]) -> None:
    """
    GuildWatch

    Posts new YouTube uploads, live streams and scheduled streams into
    Discord, and proxies Statbot statistics queries.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if log_file is None:
        log_file = get_config().paths.log_file

    setup_logging(verbose, log_file, quiet)


@main.command()
def run() -> None:
    """Run the Discord bot and the YouTube poller."""
    from .discord import GuildWatchBot

    config = get_config()
    issues = config.validate()
    for issue in issues:
        Console.warning(issue)

    if not config.discord.bot_token:
        Console.error("DISCORD_BOT_TOKEN environment variable not set")
        sys.exit(1)

    Console.header("GuildWatch")
    Console.info("Press Ctrl+C to stop")

    bot = GuildWatchBot(config)
    try:
        bot.run_forever()
    except Exception as e:
        Console.error(f"Bot crashed: {e}")
        sys.exit(1)

    Console.success("Bot stopped gracefully")


@main.command()
def check() -> None:
    """Check configuration and the guild store."""
    config = get_config()

    Console.header("Configuration Check")
    click.echo(config.summary())

    issues = config.validate()
    for issue in issues:
        Console.warning(issue)

    try:
        store = GuildStore(config.paths.database_path)
        guilds = store.get_all_guild_configs()
    except StoreError as e:
        Console.error(f"Store unavailable: {e}")
        sys.exit(1)

    channels = sum(len(g.channels) for g in guilds)
    Console.success(f"Store: {len(guilds)} guild(s), {channels} tracked channel(s)")

    if issues:
        sys.exit(1)
    Console.success("Configuration check complete")


@main.command("poll-once")
@click.option("--commit", is_flag=True, help="Record new items in the real store")
def poll_once(commit: bool) -> None:
    """
    Run a single poll cycle without Discord.

    New items are logged instead of posted. Unless --commit is given the
    cycle runs against a throwaway copy of the store, so the bot will
    still post those items later.
    """
    config = get_config()
    if not config.youtube.api_key:
        Console.error("YOUTUBE_API_KEY environment variable not set")
        sys.exit(1)

    try:
        store = GuildStore(config.paths.database_path)
    except StoreError as e:
        Console.error(f"Store unavailable: {e}")
        sys.exit(1)

    with tempfile.TemporaryDirectory(prefix="guildwatch-") as tmp:
        if not commit:
            try:
                store = store.copy_to(Path(tmp) / "dry-run.db")
            except StoreError as e:
                Console.error(f"Cannot copy store for dry run: {e}")
                sys.exit(1)

        scheduler = PollScheduler.from_config(config, store, LoggingSink())
        try:
            report = asyncio.run(scheduler.run_cycle())
        finally:
            scheduler.source.close()

    Console.header("Poll Cycle" if commit else "Poll Cycle (dry run)")
    Console.info(f"Guilds: {report.guilds}")
    Console.info(f"Channels checked: {report.channels_checked} (skipped {report.channels_skipped})")
    Console.success(f"Notifications: {report.notifications}")
    for error in report.errors:
        Console.error(error)
    if not commit:
        Console.info("Track state left unchanged (use --commit to record it)")
    Console.info(f"Next cycle would run in {report.delay:.0f}s")


# ══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    main()
