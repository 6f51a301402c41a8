"""CLI: ``samwise run``, ``samwise preview`` and ``samwise init``."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from .activity import format_activity
from .config import Config, write_template
from .errors import SamwiseError
from .orchestrator import Orchestrator
from .snapshot import GitDiffSource
from .summarizer import LiteLLMSummarizer

console = Console(stderr=True)

ERROR_STYLE = "bold red"
NOTE_STYLE = "dim"
DONE_STYLE = "green"

app = typer.Typer(
    name="samwise",
    help="Show a summary of your uncommitted git changes as Discord rich presence.",
    epilog=(
        "Examples:\n"
        "  samwise init\n"
        "  samwise run\n"
        "  samwise run --once\n"
        "  samwise run -i 30 -w ~/code/project\n"
        "  samwise preview"
    ),
    add_completion=False,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Config file (default: ~/.config/samwise/config.yaml)"),
]
WorkingDirOption = Annotated[
    str | None,
    typer.Option("--working-dir", "-w", help="Repository to watch (default: current directory)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Log debug output"),
]


def _report(message: str, style: str = ERROR_STYLE) -> None:
    console.print(Text(message, style=style))


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose)],
        force=True,
    )
    # LiteLLM and httpx are chatty at INFO.
    for name in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _load_config(
    config_path: Path | None,
    *,
    interval: float | None = None,
    working_dir: str | None = None,
) -> Config:
    try:
        config = Config.from_file(config_path)
        return config.with_overrides(interval=interval, working_dir=working_dir)
    except SamwiseError as exc:
        _report(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def run(
    config_path: ConfigOption = None,
    once: Annotated[
        bool,
        typer.Option("--once", help="Check once, then hold the status until Ctrl+C"),
    ] = False,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between diff checks"),
    ] = None,
    working_dir: WorkingDirOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Watch the working tree and keep Discord presence in sync."""
    _setup_logging(verbose)
    config = _load_config(config_path, interval=interval, working_dir=working_dir)
    orchestrator = Orchestrator(config)

    try:
        asyncio.run(orchestrator.run(once=once))
    except KeyboardInterrupt:
        orchestrator.stop()
        _report("Stopped", NOTE_STYLE)
        raise typer.Exit(130)
    except SamwiseError as exc:
        _report(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def preview(
    config_path: ConfigOption = None,
    working_dir: WorkingDirOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Summarize the current diff and print it, without touching Discord."""
    _setup_logging(verbose)
    config = _load_config(config_path, working_dir=working_dir)

    try:
        snapshot = GitDiffSource(config.working_dir).snapshot()
        if not snapshot:
            _report("No changes; the status would be cleared.", NOTE_STYLE)
            return
        summarizer = LiteLLMSummarizer.from_config(config.model)
        summary = asyncio.run(
            summarizer.summarize(config.agent.preamble, snapshot, config.agent.prompt)
        )
    except SamwiseError as exc:
        _report(str(exc))
        raise typer.Exit(1) from exc

    status = format_activity(summary, config.discord.max_length)
    console.print(
        Panel(
            Text.assemble((status, "bold"), "\n", (config.discord.state, NOTE_STYLE)),
            title=f"{len(status)}/{config.discord.max_length} chars",
            border_style="cyan",
        )
    )


@app.command()
def init(
    config_path: ConfigOption = None,
) -> None:
    """Write a commented template config file."""
    try:
        path = write_template(config_path)
    except SamwiseError as exc:
        _report(str(exc))
        raise typer.Exit(1) from exc
    _report(f"Wrote {path}", DONE_STYLE)


def cli() -> None:
    """Console entrypoint; a bare ``samwise`` means ``samwise run``."""
    args = sys.argv[1:]
    subcommands = {"run", "preview", "init"}
    if not args or args[0] not in subcommands:
        args = ["run", *args]
    app(args=args, prog_name="samwise")
