#!/usr/bin/env python3
"""
Sapporo Facility Lottery Bot - Main Entry Point

Usage:
    python main.py --config config/config.yaml run
    python main.py --config config/config.yaml info
"""
import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from lotbot.common.config import load_config
from lotbot.common.errors import LotteryError
from lotbot.common.scheduler import PortalClock

console = Console()


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging"""
    handlers = [RichHandler(console=console, rich_tracebacks=True)]

    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=handlers
    )


@click.group()
@click.option("--config", "-c", default=None, help="Path to config file (defaults to config/config.yaml, then env)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, config, verbose):
    """
    Sapporo Facility Lottery Bot

    Apply for next month's facility lotteries on behalf of a group.
    """
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
        ctx.obj["config"] = cfg
        setup_logging(
            level="DEBUG" if verbose else cfg.logging.level,
            log_file=cfg.logging.file
        )
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Create a config file from config/config.example.yaml")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def run(ctx):
    """Run the lottery applications now"""
    from lotbot.browser.bot import run_lottery

    cfg = ctx.obj["config"]

    console.print(Panel("🎯 Applying for lottery slots", style="green"))

    try:
        summary = asyncio.run(run_lottery(cfg))
    except LotteryError as e:
        console.print(Panel(f"[bold red]❌ Run aborted[/bold red]\n\n{e}", style="red"))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        sys.exit(130)

    table = Table(title="Lottery Results")
    table.add_column("Result")
    table.add_column("Entry")
    for entry in summary.succeeded:
        table.add_row("[green]success[/green]", entry.describe())
    for result in summary.failed:
        table.add_row("[red]failed[/red]", f"{result.entry.describe()} ({result.reason})")
    console.print(table)

    style = "red" if summary.failed_count else "green"
    console.print(Panel(summary.summary_line(), style=style))


@cli.command()
@click.pass_context
def info(ctx):
    """Show current configuration"""
    cfg = ctx.obj["config"]
    clock = PortalClock(cfg.browser.timezone)

    console.print(Panel("📋 Current Configuration", style="blue"))

    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Portal", cfg.portal.base_url)
    table.add_row("User ID", cfg.credentials.user_id or "-")
    table.add_row("Store API", cfg.store.base_url or "config file")
    table.add_row("Group ID", cfg.store.group_id or "-")
    table.add_row("Job ID", cfg.store.job_id or "-")
    table.add_row("Listed Entries", str(len(cfg.entries)))
    table.add_row("Expected Total", str(cfg.expected_total) if cfg.expected_total is not None else "-")
    table.add_row("Target Month", clock.next_month_key())
    table.add_row("Explorer Window", "first half" if clock.is_first_half() else "second half")
    table.add_row("Explorer Workers", str(cfg.explorer.concurrency))
    table.add_row("Headless Mode", str(cfg.browser.headless))
    table.add_row("LINE Notifications", str(cfg.notifications.line.enabled))

    console.print(table)

    if cfg.entries:
        entries = Table(title="Listed Entries")
        entries.add_column("Facility")
        entries.add_column("Room")
        entries.add_column("Date")
        entries.add_column("Time")
        for entry in cfg.entries:
            entries.add_row(entry.facility, entry.room, entry.date, entry.time)
        console.print(entries)


if __name__ == "__main__":
    cli()
