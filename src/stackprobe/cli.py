"""
Command-line interface for stackprobe.

Provides commands for:
- analyze: Detect tools in a local checkout
- check-url: Validate a repository URL
- patterns: List detection rules
- reconcile: Link saved detections to a catalog
- config: Manage configuration
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stackprobe import __version__
from stackprobe.catalog import load_catalog, load_detections
from stackprobe.config import StackProbeConfig, load_config, save_default_config
from stackprobe.engine import DetectionEngine
from stackprobe.errors import ConfigError, StackProbeError, invalid_reference
from stackprobe.patterns import normalize_category_for_ui
from stackprobe.references import validate_repository_reference
from stackprobe.schemas import ReconciledDetection, RepositoryReference
from stackprobe.transport import LocalCheckoutFetcher, collect_repository_files

# Configure logging
logging.basicConfig(
    level=logging.INFO if not os.environ.get("STACKPROBE_DEBUG") else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# CLI app
app = typer.Typer(
    name="stackprobe",
    help="Detect the tools and services a repository uses",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Global config (loaded once)
_config: StackProbeConfig | None = None


def get_config(config_path: Path | None = None) -> StackProbeConfig:
    """Get or load configuration."""
    global _config
    if _config is None:
        try:
            _config = load_config(config_path)
        except ConfigError as e:
            console.print(f"[yellow]Warning:[/yellow] {e.message}")
            _config = StackProbeConfig.default()
    return _config


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]stackprobe[/bold] version {__version__}")
        raise typer.Exit()


def _build_engine() -> DetectionEngine:
    try:
        return DetectionEngine.from_config(get_config())
    except StackProbeError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


def _dump(payload: object) -> str:
    indent = 2 if get_config().output.pretty_json else None
    return json.dumps(payload, indent=indent, default=str)


def _print_reconciled(reconciled: list[ReconciledDetection]) -> None:
    table = Table(title="Catalog Reconciliation")
    table.add_column("Detected", style="cyan")
    table.add_column("Match")
    table.add_column("Catalog Tool")
    table.add_column("Suggested")
    table.add_column("Monthly Cost", justify="right")

    for item in reconciled:
        table.add_row(
            item.detected_name,
            item.match_kind.value,
            item.catalog_tool_id or "-",
            item.suggested_tool_id or "-",
            f"${item.resolved_monthly_cost:,.2f}",
        )
    console.print(table)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True,
                     help="Show version and exit"),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
) -> None:
    """stackprobe - repository signal detection."""
    if config:
        global _config
        _config = None
        get_config(config)


@app.command()
def analyze(
    path: Annotated[Path, typer.Argument(help="Path to a repository checkout")] = Path("."),
    catalog: Annotated[Optional[Path], typer.Option("--catalog", help="Catalog snapshot (JSON)")] = None,
    out: Annotated[Optional[Path], typer.Option("--out", "-o", help="Write detections to a JSON file")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
    full: Annotated[bool, typer.Option("--full", help="Scan every file instead of the key files")] = False,
) -> None:
    """
    Detect tools in a local checkout.

    Reads the key manifest and config files plus CI workflows, runs every
    detection rule, and optionally reconciles the result against a catalog.
    """
    cfg = get_config()
    path = path.resolve()

    if not path.is_dir():
        console.print(f"[red]Error:[/red] Repository path does not exist: {path}")
        raise typer.Exit(1)

    engine = _build_engine()
    fetcher = LocalCheckoutFetcher(
        path,
        max_file_size_bytes=cfg.fetch.max_file_size_bytes,
        excluded_dirs=cfg.fetch.excluded_dirs,
    )

    try:
        tools = load_catalog(catalog) if catalog else None
        if full:
            files = fetcher.walk()
        else:
            files = collect_repository_files(
                fetcher,
                RepositoryReference(owner="local", repo=path.name or "checkout"),
                branch=cfg.fetch.default_branch,
                key_files=cfg.fetch.key_files,
                workflow_dir=cfg.fetch.workflow_dir,
                max_workers=cfg.fetch.max_workers,
            )
    except StackProbeError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    detections, summary = engine.analyze_repository(files)
    reconciled = engine.reconcile(detections, tools) if tools is not None else []

    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(_dump([d.model_dump(mode="json") for d in detections]))

    if as_json:
        payload = {
            "detections": [d.model_dump(mode="json") for d in detections],
            "summary": summary.model_dump(mode="json"),
        }
        if tools is not None:
            payload["reconciled"] = [r.model_dump(mode="json") for r in reconciled]
        typer.echo(_dump(payload))
        return

    console.print(Panel(f"[bold]Analyzing repository:[/bold] {path}", title="stackprobe"))
    console.print(f"[green]✓[/green] Read [bold]{len(files)}[/bold] files")

    if detections:
        table = Table(title="Detected Tools")
        table.add_column("Tool", style="cyan")
        table.add_column("Category")
        table.add_column("Version")
        table.add_column("Confidence", justify="right")
        table.add_column("File")

        for d in detections:
            table.add_row(
                d.detected_name,
                normalize_category_for_ui(d.category),
                d.version or "-",
                f"{d.confidence_score:.0%}",
                d.file_path,
            )
        console.print(table)
    else:
        console.print("[yellow]No tools detected[/yellow]")

    console.print()
    console.print(f"  Tools:          {summary.total_tools}")
    console.print(f"  Est. cost:      ${summary.total_estimated_cost:,.2f}/month")
    console.print(f"  Avg confidence: {summary.average_confidence:.0%}")

    if reconciled:
        console.print()
        _print_reconciled(reconciled)

    if out:
        console.print()
        console.print(f"[dim]Detections saved to:[/dim] {out}")


@app.command("check-url")
def check_url(
    url: Annotated[str, typer.Argument(help="Repository URL to validate")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
) -> None:
    """
    Validate a repository URL.

    Exits with status 1 when the URL is rejected.
    """
    reference, reason = validate_repository_reference(url)
    if reference is None:
        error = invalid_reference(reason)
        if as_json:
            typer.echo(_dump({"accepted": False, "error": error.to_dict()}))
        else:
            console.print(f"[red]Rejected:[/red] {reason}")
            console.print(f"[dim]{error.suggestion}[/dim]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(_dump({"accepted": True, "owner": reference.owner, "repo": reference.repo}))
        return
    console.print(f"[green]✓[/green] {reference.slug}")


@app.command()
def patterns(
    category: Annotated[Optional[str], typer.Option("--category", help="Only show one category")] = None,
) -> None:
    """List the detection rules in evaluation order."""
    engine = _build_engine()

    table = Table(title="Detection Patterns")
    table.add_column("Tool", style="cyan")
    table.add_column("Category")
    table.add_column("Files")
    table.add_column("Confidence", justify="right")
    table.add_column("Cost", justify="right")

    shown = 0
    for pattern in engine.registry:
        if category and category.lower() not in pattern.category.value.lower():
            continue
        table.add_row(
            pattern.name,
            pattern.category.value,
            ", ".join(pattern.file_triggers),
            f"{pattern.base_confidence:.2f}",
            f"${pattern.cost_estimate:,.0f}",
        )
        shown += 1

    if shown == 0:
        console.print(f"[yellow]No patterns in category:[/yellow] {category}")
        raise typer.Exit(1)
    console.print(table)


@app.command()
def reconcile(
    detections: Annotated[Path, typer.Argument(help="Saved detections (JSON)")],
    catalog: Annotated[Path, typer.Argument(help="Catalog snapshot (JSON)")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
) -> None:
    """Link saved detections to canonical catalog tools."""
    try:
        raw = load_detections(detections)
        tools = load_catalog(catalog)
    except StackProbeError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    reconciled = _build_engine().reconcile(raw, tools)

    if as_json:
        typer.echo(_dump([r.model_dump(mode="json") for r in reconciled]))
        return
    _print_reconciled(reconciled)


@app.command("config")
def config_cmd(
    init_config: Annotated[bool, typer.Option("--init", help="Create default config file")] = False,
    show: Annotated[bool, typer.Option("--show", help="Show current configuration")] = False,
    path: Annotated[Optional[Path], typer.Option("--path", help="Config file path for --init")] = None,
) -> None:
    """
    Manage configuration.

    Create or view configuration files.
    """
    if init_config:
        config_path = save_default_config(path)
        console.print(f"[green]✓[/green] Created config file: {config_path}")
        return

    if show:
        console.print("[bold]Current Configuration[/bold]")
        console.print()
        console.print(get_config().model_dump_json(indent=2))
        return

    console.print("Use --init to create a config file or --show to view current config.")
    console.print()
    console.print("[dim]Config is searched in:[/dim]")
    console.print("  • ./stackprobe.toml")
    console.print("  • ./.stackprobe.toml")
    console.print("  • ./pyproject.toml [tool.stackprobe]")


if __name__ == "__main__":
    app()
