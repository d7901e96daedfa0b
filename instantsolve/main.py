#!/usr/bin/env python3
"""
InstantSolve - Command Line Entry Point

Usage:
    python -m instantsolve.main modes
    python -m instantsolve.main classify "calculate 2+2"
    python -m instantsolve.main ask "what is a black hole"
    python -m instantsolve.main ask "what is in this picture" --image https://example.com/cat.png
"""

import asyncio
import re

import click
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from instantsolve.classifier import classify as classify_query
from instantsolve.classifier import extract_features
from instantsolve.config import get_settings
from instantsolve.dispatcher import build_selector
from instantsolve.modes import MODE_DESCRIPTIONS, Mode
from instantsolve.registry import build_registry
from instantsolve.utils.logging import setup_logging

console = Console()

_BOLD_SPAN = re.compile(r"\{\{bold\}\}(.*?)\{\{/bold\}\}", re.DOTALL)
_SECTION_HEADER = re.compile(r"^### (.+) ###$", re.MULTILINE)


def render_markup(text: str) -> str:
    """Translate normalized answer markup to rich console markup."""
    text = escape(text)
    text = _BOLD_SPAN.sub(r"[bold]\1[/bold]", text)
    return _SECTION_HEADER.sub(r"[bold underline]\1[/bold underline]", text)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """InstantSolve - route questions to the right model"""
    setup_logging(level="DEBUG" if debug else "WARNING")


@cli.command()
def modes():
    """List response modes and their models."""
    registry = build_registry(get_settings())

    table = Table(title="Response Modes")
    table.add_column("Mode")
    table.add_column("Description")
    table.add_column("Primary")
    table.add_column("Backup")
    table.add_column("Max Tokens", justify="right")

    for config in registry:
        table.add_row(
            config.mode.value,
            MODE_DESCRIPTIONS[config.mode],
            config.primary.model_id,
            config.backup.model_id,
            str(config.params.max_tokens),
        )

    console.print(table)


@cli.command()
@click.argument("text")
def classify(text: str):
    """Show which mode a query would be routed to."""
    result = classify_query(text)

    console.print(f"\n[bold blue]Mode:[/bold blue] {result.mode.value} ({result.confidence:.0%} confidence)")

    table = Table()
    table.add_column("Mode")
    table.add_column("Score", justify="right")
    for mode, score in result.scores.items():
        style = "green" if mode == result.mode else ""
        table.add_row(mode.value, str(score), style=style)
    console.print(table)

    if result.matched_signals:
        console.print("[dim]Signals: " + ", ".join(sorted(result.matched_signals)) + "[/dim]")
    for feature in extract_features(text):
        console.print(f"[dim]• {feature}[/dim]")


async def _ask(text: str, mode: str | None, image: str | None):
    selector = build_selector(get_settings())
    try:
        return await selector.get_answer(text, image_ref=image, mode=mode)
    finally:
        await selector.aclose()


@cli.command()
@click.argument("text")
@click.option("--mode", type=click.Choice([m.value for m in Mode]), default=None, help="Skip classification")
@click.option("--image", default=None, help="Image URL or data URI (selects image mode)")
def ask(text: str, mode: str | None, image: str | None):
    """Answer a question."""
    with console.status("[bold green]Thinking..."):
        result = asyncio.run(_ask(text, mode, image))

    if not result.success:
        logger.debug(f"Answer failed: {result.error_kind}")
        console.print(f"[red]{escape(result.error or 'Unknown error')}[/red]")
        raise SystemExit(1)

    console.print(render_markup(result.normalized_text))
    footer = f"{result.used_mode.value} · {result.used_model} · {result.elapsed_ms:.0f}ms"
    if result.fallback_from is not None:
        footer += f" · fell back from {result.fallback_from.value}"
    console.print(f"\n[dim]{escape(footer)}[/dim]")


if __name__ == "__main__":
    cli()
