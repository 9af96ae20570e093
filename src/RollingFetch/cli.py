"""Typer-based CLI for RollingFetch."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from RollingFetch.config import load_transport_config, window_size_from_env
from RollingFetch.errors import RollingFetchError
from RollingFetch.request import FetchRequest
from RollingFetch.scheduler import RollingScheduler
from RollingFetch.transport import HttpTransport, Output, OutputMarker, TransferInfo

LOGGER = logging.getLogger(__name__)

console = Console()
app = typer.Typer(help="RollingFetch: fetch URLs with a bounded number of parallel transfers")

# Swapped out by tests for an httpx.MockTransport-backed instance
_TRANSPORT_FACTORY = HttpTransport

# ============================================================================
# Setup
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    """Setup logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ============================================================================
# Commands
# ============================================================================


@app.command()
def fetch(
    urls: List[str] = typer.Argument(..., help="URLs to fetch"),
    window: Optional[int] = typer.Option(
        None, "--window", "-w", help="Max parallel transfers (default: ROLLINGFETCH_WINDOW or 5)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML/JSON transport config",
        envvar="ROLLINGFETCH_CONFIG",
    ),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="User-Agent header"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-transfer timeout (s)"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Write each body to a file in this directory"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Fetch every URL, keeping at most WINDOW transfers in flight."""
    _setup_logging(verbose)

    try:
        cfg = load_transport_config(
            config, overrides={"user_agent": user_agent, "timeout": timeout}
        )
        scheduler = RollingScheduler(
            window_size=window if window is not None else window_size_from_env(),
            config=cfg,
            transport=_TRANSPORT_FACTORY(),
        )
        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)

        for request_id, url in enumerate(urls):
            request = FetchRequest(url, attributes={"request_id": request_id})
            if output_dir is not None:
                request.set_output_path(output_dir / f"{request_id:04d}.body")
            scheduler.add(request)
    except RollingFetchError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=2)

    results: Dict[int, TransferInfo] = {}

    def _collect(output: Output, info: TransferInfo, request: FetchRequest) -> None:
        results[request.attributes["request_id"]] = info
        if output is OutputMarker.WRITTEN_TO_FILE:
            LOGGER.debug("Body of %s written to %s", info.url, request.output_path)

    scheduler.execute(_collect)

    table = Table(title="RollingFetch Results")
    table.add_column("ID", style="cyan")
    table.add_column("URL", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Bytes", justify="right")
    table.add_column("Seconds", justify="right")
    table.add_column("Error", style="red")

    failures = 0
    for request_id in sorted(results):
        info = results[request_id]
        if not info.ok:
            failures += 1
        colour = "green" if info.ok else "red"
        status = f"[{colour}]{info.status_code}[/{colour}]"
        table.add_row(
            str(request_id),
            info.url,
            status,
            str(info.size_download),
            f"{info.total_time:.2f}",
            info.error or "",
        )

    console.print(table)
    console.print(f"\n[cyan]Succeeded: {len(results) - failures}/{len(results)}[/cyan]")
    if failures:
        raise typer.Exit(code=1)


@app.command()
def show_config(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML/JSON transport config",
        envvar="ROLLINGFETCH_CONFIG",
    ),
    raw: bool = typer.Option(False, "--raw", help="Raw JSON"),
) -> None:
    """Print the effective global transport options."""
    try:
        cfg = load_transport_config(config)
    except RollingFetchError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=2)

    data: Dict[str, Any] = cfg.to_options()
    if raw:
        typer.echo(json.dumps(data, indent=2, default=str))
    else:
        console.print(
            Panel(json.dumps(data, indent=2, default=str), title="Transport Config", expand=False)
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
