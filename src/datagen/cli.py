"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console

from datagen import __version__
from datagen.clients.completion_client import CompletionClient
from datagen.config import load_config
from datagen.exceptions import SinkWriteError, SourceIOError
from datagen.pipeline.orchestrator import PipelineOrchestrator
from datagen.pipeline.prompt_source import count_prompts, ensure_readable_file
from datagen.progress import ConsoleObserver, RichProgressObserver, stats_label

API_KEY_ENV = "API_KEY"

app = typer.Typer(
    name="datagen",
    help="Generate a JSONL chat dataset by completing every line of a prompts file.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"datagen {__version__}", markup=False, highlight=False)
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s"
    )
    logging.getLogger("datagen").setLevel(logging.DEBUG)


@app.command()
def generate(
    config: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON config file with option defaults"),
    model: Optional[str] = typer.Option(None, "--model", help="Model name to use for completions"),
    prompts: Optional[str] = typer.Option(None, "--prompts", help="File with one prompt per line"),
    out: Optional[str] = typer.Option(None, "--out", help="Output JSONL file (default: dataset.jsonl)"),
    api: Optional[str] = typer.Option(None, "--api", help="API base URL (default: https://openrouter.ai/api/v1)"),
    system: Optional[str] = typer.Option(None, "--system", help="Optional system prompt"),
    store_system: Optional[bool] = typer.Option(
        None, "--store-system/--no-store-system", help="Write the system prompt into the dataset (default: on)"
    ),
    concurrent: Optional[int] = typer.Option(None, "--concurrent", min=1, help="Number of parallel requests (default: 1)"),
    provider: Optional[str] = typer.Option(
        None, "--openrouter.provider", "--provider", help="OpenRouter provider slugs, comma-separated"
    ),
    provider_sort: Optional[str] = typer.Option(
        None, "--openrouter.providerSort", "--provider-sort", help="Provider sorting (price|throughput|latency)"
    ),
    reasoning_effort: Optional[str] = typer.Option(
        None, "--reasoningEffort", "--reasoning-effort", help="Reasoning effort (none|minimal|low|medium|high|xhigh)"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request timeout in seconds"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show the progress bar (default: on)"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging to stderr"),
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True, help="Print the version and exit"
    ),
) -> None:
    """Complete every non-blank line of the prompts file and write a chat dataset.

    Rows are written as requests finish, so with --concurrent > 1 the output
    order can differ from the input order.
    """
    _configure_logging(verbose)

    try:
        cfg = load_config(
            config,
            {
                "model": model,
                "prompts": prompts,
                "out": out,
                "api": api,
                "system": system,
                "store-system": store_system,
                "concurrent": concurrent,
                "openrouter.provider": provider,
                "openrouter.providerSort": provider_sort,
                "reasoningEffort": reasoning_effort,
                "timeout": timeout,
                "progress": progress,
            },
        )
    except (ValueError, FileNotFoundError) as exc:
        err_console.print(f"[red]{exc}[/red]", highlight=False)
        raise typer.Exit(1)

    api_key = os.environ.get(API_KEY_ENV)
    if not api_key:
        err_console.print(f'[red]Missing env var "{API_KEY_ENV}".[/red]')
        raise typer.Exit(1)

    try:
        prompts_path = ensure_readable_file(cfg.prompts_path)
    except (OSError, ValueError) as exc:
        err_console.print(f"[red]{exc}[/red]", highlight=False)
        raise typer.Exit(1)

    total = 0
    if cfg.progress and err_console.is_terminal:
        try:
            total = count_prompts(prompts_path)
        except (OSError, UnicodeDecodeError):
            total = 0

    if total > 0:
        observer = RichProgressObserver(total, err_console)
        display = observer
    else:
        observer = ConsoleObserver(err_console)
        display = nullcontext()

    client = CompletionClient(api_key, api_base=cfg.api_base, timeout=cfg.timeout)
    orchestrator = PipelineOrchestrator(client, cfg)

    try:
        with display:
            result = asyncio.run(orchestrator.run(observer=observer, total=total))
    except (SourceIOError, SinkWriteError) as exc:
        err_console.print(f"[red]{exc}[/red]", highlight=False)
        raise typer.Exit(1)

    stats = result.stats
    err_console.print(
        f"Done: {stats.completed} prompts, {stats_label(stats.ok, stats.err, stats.spend_usd)}"
        f" in {result.elapsed_seconds:.1f}s",
        highlight=False,
    )
    console.print(f"[green]Dataset saved: {result.out_path}[/green]")


if __name__ == "__main__":
    app()
