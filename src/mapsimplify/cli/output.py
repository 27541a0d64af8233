"""
Output formatting module for the mapsimplify CLI.

This module handles formatted output for the CLI, supporting both:
- Human-readable text output with Rich formatting
- Machine-readable JSON output for automation
"""

import json
import logging
import sys
from dataclasses import asdict, dataclass
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config.schema import MasterConfig

logger = logging.getLogger(__name__)


@dataclass
class LayerResult:
    """Result for a single layer."""

    name: str
    features: int
    rejected: int
    dropped: int
    vertices_before: int
    vertices_after: int
    output_path: str  # Using str for JSON serialization

    def __post_init__(self) -> None:
        """Validate layer result fields."""
        for attr in ("features", "rejected", "dropped", "vertices_before", "vertices_after"):
            if getattr(self, attr) < 0:
                raise ValueError(f"{attr} must be non-negative, got {getattr(self, attr)}")


@dataclass
class RunResult:
    """Result from a simplification run."""

    status: str  # "success" or "partial_success"
    exit_code: int  # 0 or 1
    layers: list[LayerResult]
    total_features: int
    total_rejected: int
    rejected_log: str | None  # Using str for JSON serialization

    def __post_init__(self) -> None:
        """Validate run result fields."""
        valid_statuses = {"success", "partial_success"}
        if self.status not in valid_statuses:
            raise ValueError(f"status must be one of {valid_statuses}, got '{self.status}'")

        valid_exit_codes = {0, 1}
        if self.exit_code not in valid_exit_codes:
            raise ValueError(f"exit_code must be one of {valid_exit_codes}, got {self.exit_code}")


class OutputFormatter:
    """Handles CLI output formatting for text and JSON modes."""

    def __init__(self, output_format: str = "text", quiet: bool = False, verbose: bool = False) -> None:
        """
        Initialize the output formatter.

        Args:
            output_format: Output format ("text" or "json")
            quiet: Suppress progress output
            verbose: Show detailed progress information

        Raises:
            ValueError: If output_format is not "text" or "json"
        """
        if output_format not in ("text", "json"):
            raise ValueError(f"output_format must be 'text' or 'json', got '{output_format}'")

        self.output_format = output_format
        self.quiet = quiet
        self.verbose = verbose
        self.console = Console(file=sys.stdout)

    def print_result(self, result: RunResult) -> None:
        """Print run result in text or JSON format."""
        if self.output_format == "json":
            print(json.dumps(asdict(result), indent=2))
        else:
            self._print_text_result(result)

    def _print_text_result(self, result: RunResult) -> None:
        """Print result as formatted text using Rich."""
        if result.status == "success":
            status_text = Text("Complete!", style="bold green")
            status_icon = "✓"
        else:
            status_text = Text("Partially Complete", style="bold yellow")
            status_icon = "⚠"

        self.console.print()
        self.console.print(status_icon, status_text)
        self.console.print()

        for layer in result.layers:
            status_symbol = "✓" if layer.rejected == 0 else "⚠"
            ratio = layer.vertices_after / layer.vertices_before if layer.vertices_before else 1.0
            self.console.print(
                f"  {status_symbol} [bold]{layer.name}[/bold]: {layer.features} features, "
                f"{layer.vertices_before:,} → {layer.vertices_after:,} vertices ({ratio:.1%})"
            )
            if layer.rejected or layer.dropped:
                self.console.print(f"    {layer.rejected} rejected, {layer.dropped} dropped", style="yellow")
            self.console.print(f"    → {layer.output_path}")

        self.console.print()
        self.console.print(
            f"  Total: [bold]{result.total_features}[/bold] features written, "
            f"[bold]{result.total_rejected}[/bold] rejected"
        )

        if result.rejected_log:
            self.console.print(f"  Rejected features logged to: [yellow]{result.rejected_log}[/yellow]")

        self.console.print()

    def print_dry_run(self, config: MasterConfig) -> None:
        """Print dry-run validation results."""
        layers = [
            {
                "name": layer.name,
                "input": layer.input,
                "exists": Path(layer.input).exists(),
                "keep": config.keep_for(layer),
            }
            for layer in config.layers
        ]

        if self.output_format == "json":
            output = {
                "valid": all(layer["exists"] for layer in layers),
                "layers": layers,
                "output_dir": config.settings.output_dir,
            }
            print(json.dumps(output, indent=2))
            return

        self.console.print()
        self.console.print("✓ [green]Config valid[/green]")

        table = Table(title="Layers", show_header=True, header_style="bold magenta")
        table.add_column("Layer", style="cyan")
        table.add_column("Keep", style="green")
        table.add_column("Input")
        for layer in layers:
            status = "" if layer["exists"] else " [red](missing)[/red]"
            table.add_row(layer["name"], f"{layer['keep']:.2%}", f"{layer['input']}{status}")
        self.console.print(table)

        self.console.print(f"✓ Output directory [cyan]{config.settings.output_dir}[/cyan]")
        self.console.print()
        self.console.print("[bold green]Ready to run.[/bold green]")
        self.console.print()

    def print_layer_info(self, name: str, rows: list[tuple[str, int, int, int]]) -> None:
        """
        Print per-feature ring and vertex counts.

        Args:
            name: Layer name or path shown as the title
            rows: (feature_id, polygons, rings, vertices) per feature
        """
        if self.output_format == "json":
            output = [
                {"feature_id": fid, "polygons": polygons, "rings": rings, "vertices": vertices}
                for fid, polygons, rings, vertices in rows
            ]
            print(json.dumps({"layer": name, "features": output}, indent=2))
            return

        table = Table(title=name, show_header=True, header_style="bold magenta")
        table.add_column("Feature", style="cyan")
        table.add_column("Polygons", justify="right")
        table.add_column("Rings", justify="right")
        table.add_column("Vertices", justify="right", style="green")
        for fid, polygons, rings, vertices in rows:
            table.add_row(fid, str(polygons), str(rings), f"{vertices:,}")

        self.console.print(table)
        self.console.print(f"  Total: [bold]{sum(r[3] for r in rows):,}[/bold] vertices in {len(rows)} features")

    def print_error(self, message: str, hint: str | None = None, details: str | None = None) -> None:
        """
        Print error with optional hint and details.

        Args:
            message: The main error message
            hint: Optional hint for fixing the error
            details: Optional detailed error information
        """
        if self.output_format == "json":
            error_obj = {"error": message}
            if hint:
                error_obj["hint"] = hint
            if details:
                error_obj["details"] = details
            print(json.dumps(error_obj, indent=2))
        else:
            self.console.print()
            self.console.print(f"[bold red]Error:[/bold red] {message}")

            if details:
                self.console.print(Panel(details, title="Details", border_style="red", expand=False))

            if hint:
                self.console.print()
                self.console.print(f"[bold cyan]Fix:[/bold cyan] {hint}")

            self.console.print()

        logger.error(f"Error: {message}")

    def print_progress(self, message: str, style: str = "") -> None:
        """Print progress message (only if not quiet and format is text)."""
        if self.quiet or self.output_format == "json":
            return

        if style:
            self.console.print(message, style=style)
        else:
            self.console.print(message)

    def print_verbose(self, message: str, style: str = "") -> None:
        """Print verbose message (only if verbose mode is enabled and format is text)."""
        if not self.verbose:
            return
        self.print_progress(message, style=style)
