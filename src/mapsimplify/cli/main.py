"""
Main Typer CLI application for mapsimplify.

This module provides the unified command-line interface with three subcommands:
- run: Simplify every layer listed in a configuration file
- simplify: Simplify a single vector file
- info: Display ring and vertex counts of a vector file
"""

import logging
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from mapsimplify.cli.logging_config import setup_logging
from mapsimplify.cli.output import LayerResult, OutputFormatter, RunResult
from mapsimplify.config import ENV_OUTPUT_DIR, SettingsConfig, load_config
from mapsimplify.core import (
    OutputFormat,
    OutputWriter,
    RingValidationError,
    SimplificationError,
    read_features,
    simplify_features,
    simplify_features_parallel,
)

app = typer.Typer(
    name="mapsimplify",
    help="Topology-preserving polygon simplification",
    no_args_is_help=True,
    add_completion=False,
)

logger = logging.getLogger(__name__)


def _resolve_output_format(output_format: str) -> str:
    """Validate output format, switching to JSON when stdout is piped."""
    if output_format not in ("text", "json"):
        OutputFormatter().print_error(
            f"Invalid output format '{output_format}'. Must be 'text' or 'json'.",
        )
        raise typer.Exit(2)

    if output_format == "text" and not sys.stdout.isatty():
        logger.debug("Auto-detected non-TTY output, switching to JSON format")
        return "json"
    return output_format


def _simplify_layer(
    writer: OutputWriter,
    layer_name: str,
    input_path: Path,
    settings: SettingsConfig,
    keep: float,
    source_layer: str | None = None,
) -> LayerResult:
    """Read, simplify and write one layer, recording rejections on the writer."""
    features, rejected, crs = read_features(input_path, layer=source_layer, on_invalid=settings.on_invalid)
    columns = list(dict.fromkeys(key for feature in features for key in feature.properties))

    options = {
        "method": settings.method,
        "weighting": settings.weighting,
        "repair": settings.repair,
        "snap_interval": settings.snap_interval,
        "drop_null_geometries": settings.drop_null_geometries,
        "on_invalid": settings.on_invalid,
    }
    if settings.workers > 1:
        result = simplify_features_parallel(features, keep, settings.keep_shapes, workers=settings.workers, **options)
    else:
        result = simplify_features(features, keep, settings.keep_shapes, **options)

    for record in [*rejected, *result.rejected]:
        writer.record_rejection(layer_name, record.feature_id, record.error)

    if not result.features:
        raise SimplificationError(f"Layer '{layer_name}' has no features left to write")

    output_path = writer.write_layer(layer_name, result.features, crs=crs, columns=columns)

    return LayerResult(
        name=layer_name,
        features=len(result.features),
        rejected=len(rejected) + len(result.rejected),
        dropped=len(result.dropped),
        vertices_before=result.vertices_before,
        vertices_after=result.vertices_after,
        output_path=str(output_path),
    )


def _finish(formatter: OutputFormatter, writer: OutputWriter, layers: list[LayerResult]) -> None:
    """Write the rejection log, print the summary and exit with the run status."""
    rejected_log = writer.finalize()
    total_rejected = sum(layer.rejected for layer in layers)

    if total_rejected:
        status, exit_code = "partial_success", 1
    else:
        status, exit_code = "success", 0

    formatter.print_result(
        RunResult(
            status=status,
            exit_code=exit_code,
            layers=layers,
            total_features=sum(layer.features for layer in layers),
            total_rejected=total_rejected,
            rejected_log=str(rejected_log) if rejected_log else None,
        )
    )
    raise typer.Exit(exit_code)


@app.command("run")
def run_command(
    config_file: Annotated[
        Path,
        typer.Argument(
            help="Path to master configuration file (simplify.toml)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Override output directory from config"),
    ] = None,
    keep: Annotated[
        float | None,
        typer.Option("--keep", "-k", help="Override proportion of vertices to retain", min=0.0, max=1.0),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-j", help="Worker processes per layer (overrides config)", min=1),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Validate configuration without processing"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing output files"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--output-format", help="Output format: text or json"),
    ] = "text",
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed progress"),
    ] = False,
) -> None:
    """
    Simplify every layer defined in CONFIG_FILE.

    \b
    CONFIG FILE FORMAT (simplify.toml):
        [settings]
        keep = 0.05                # Proportion of vertices to retain
        keep_shapes = true         # Never drop collapsed features
        output_dir = "./output"
        file_format = "gpkg"       # or "shp"

        [[layers]]
        name = "counties"          # Required: output file name
        input = "counties.shp"     # Required: any file geopandas reads
        keep = 0.1                 # Optional per-layer override

    \b
    EXAMPLES:
        mapsimplify run simplify.toml
        mapsimplify run simplify.toml --dry-run
        mapsimplify run simplify.toml -o ./out --keep 0.02 --workers 4
    """
    setup_logging(verbose=verbose, quiet=quiet)
    output_format = _resolve_output_format(output_format)
    formatter = OutputFormatter(output_format=output_format, quiet=quiet, verbose=verbose)

    try:
        config = load_config(config_file)
    except (ValueError, ValidationError) as e:
        formatter.print_error(
            "Invalid configuration",
            hint=f"Check the [settings] and [[layers]] tables in {config_file}",
            details=str(e),
        )
        raise typer.Exit(2) from None

    if output is not None:
        config.settings.output_dir = str(output)
        logger.info(f"Output directory overridden to: {output}")
    elif os.getenv(ENV_OUTPUT_DIR):
        config.settings.output_dir = os.getenv(ENV_OUTPUT_DIR)
        logger.info(f"Output directory taken from {ENV_OUTPUT_DIR}: {config.settings.output_dir}")

    if keep is not None:
        if keep <= 0:
            formatter.print_error(f"--keep must be greater than 0, got {keep}")
            raise typer.Exit(2)
        config.settings.keep = keep
        for layer in config.layers:
            layer.keep = None
        logger.info(f"Keep overridden to: {keep}")

    if workers is not None:
        config.settings.workers = workers

    missing = [layer for layer in config.layers if not Path(layer.input).exists()]
    if missing:
        formatter.print_error(
            f"Input not found for layer(s): {', '.join(layer.name for layer in missing)}",
            hint=f"Create the input files or update the paths in {config_file}",
            details="\n".join(layer.input for layer in missing),
        )
        raise typer.Exit(2)

    if dry_run:
        formatter.print_dry_run(config)
        raise typer.Exit(0)

    output_dir = Path(config.settings.output_dir).resolve()
    writer = OutputWriter(
        output_dir,
        output_format=OutputFormat(config.settings.file_format),
        target_crs=config.settings.target_crs,
    )

    if not force:
        existing = [layer.name for layer in config.layers if writer.check_output_exists(layer.name)]
        if existing:
            formatter.print_error(
                f"Output already exists for layers: {', '.join(existing)}",
                hint="Use --force to overwrite existing outputs",
            )
            raise typer.Exit(2)

    results: list[LayerResult] = []
    for index, layer in enumerate(config.layers, 1):
        formatter.print_progress(f"[{index}/{len(config.layers)}] Simplifying layer: {layer.name}", style="cyan")
        try:
            layer_result = _simplify_layer(
                writer,
                layer.name,
                Path(layer.input),
                config.settings,
                keep=config.keep_for(layer),
                source_layer=layer.source_layer,
            )
        except RingValidationError as e:
            writer.finalize()
            formatter.print_error(
                f"Malformed geometry in layer '{layer.name}'",
                hint="Set on_invalid = \"skip\" to log malformed features to REJECTED.csv and continue",
                details=str(e),
            )
            raise typer.Exit(2) from None
        except SimplificationError as e:
            writer.finalize()
            formatter.print_error(str(e), hint="Check the input layer contains polygon features")
            raise typer.Exit(2) from None

        formatter.print_verbose(
            f"  ✓ {layer.name}: {layer_result.vertices_before:,} → {layer_result.vertices_after:,} vertices"
        )
        results.append(layer_result)

    _finish(formatter, writer, results)


@app.command("simplify")
def simplify_command(
    input_path: Annotated[
        Path,
        typer.Argument(help="Input vector file", exists=True, dir_okay=False, readable=True),
    ],
    output_path: Annotated[
        Path,
        typer.Argument(help="Output file (.gpkg or .shp)"),
    ],
    keep: Annotated[
        float,
        typer.Option("--keep", "-k", help="Proportion of vertices to retain", min=0.0, max=1.0),
    ] = 0.05,
    keep_shapes: Annotated[
        bool,
        typer.Option("--keep-shapes/--no-keep-shapes", help="Never drop features whose geometry collapses"),
    ] = True,
    method: Annotated[
        str,
        typer.Option("--method", help="Ranking method: 'vis' (effective area) or 'dp' (Douglas-Peucker)"),
    ] = "vis",
    weighting: Annotated[
        float,
        typer.Option("--weighting", help="Angle weighting for the 'vis' method", min=0.0, max=1.0),
    ] = 0.0,
    no_repair: Annotated[
        bool,
        typer.Option("--no-repair", help="Do not restore vertices where arcs cross"),
    ] = False,
    snap_interval: Annotated[
        float | None,
        typer.Option("--snap-interval", help="Snap vertices closer than this distance", min=0.0),
    ] = None,
    source_layer: Annotated[
        str | None,
        typer.Option("--layer", help="Layer to read from a multi-layer source"),
    ] = None,
    target_crs: Annotated[
        str | None,
        typer.Option("--target-crs", help="Reproject output to this CRS (e.g. EPSG:4326)"),
    ] = None,
    workers: Annotated[
        int,
        typer.Option("--workers", "-j", help="Worker processes", min=1),
    ] = 1,
    output_format: Annotated[
        str,
        typer.Option("--output-format", help="Output format: text or json"),
    ] = "text",
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed progress"),
    ] = False,
) -> None:
    """
    Simplify a single vector file.

    \b
    EXAMPLES:
        mapsimplify simplify counties.shp counties_simple.gpkg --keep 0.05
        mapsimplify simplify regions.geojson out.shp -k 0.1 --no-keep-shapes
    """
    setup_logging(verbose=verbose, quiet=quiet)
    output_format = _resolve_output_format(output_format)
    formatter = OutputFormatter(output_format=output_format, quiet=quiet, verbose=verbose)

    suffix = output_path.suffix.lower().lstrip(".")
    if suffix not in ("gpkg", "shp"):
        formatter.print_error(f"Unsupported output extension '.{suffix}'", hint="Use a .gpkg or .shp output path")
        raise typer.Exit(2)

    try:
        settings = SettingsConfig(
            keep=keep,
            method=method,
            weighting=weighting,
            keep_shapes=keep_shapes,
            repair=not no_repair,
            snap_interval=snap_interval or None,
            workers=workers,
            target_crs=target_crs,
        )
    except ValidationError as e:
        formatter.print_error("Invalid options", details=str(e))
        raise typer.Exit(2) from None

    writer = OutputWriter(output_path.parent, output_format=OutputFormat(suffix), target_crs=settings.target_crs)
    formatter.print_progress(f"Simplifying {input_path} (keep={keep:.2%})", style="cyan")

    try:
        layer_result = _simplify_layer(
            writer, output_path.stem, input_path, settings, keep=keep, source_layer=source_layer
        )
    except SimplificationError as e:
        writer.finalize()
        formatter.print_error(str(e), hint="Check the input layer contains polygon features")
        raise typer.Exit(2) from None

    _finish(formatter, writer, [layer_result])


@app.command("info")
def info_command(
    input_path: Annotated[
        Path,
        typer.Argument(help="Input vector file", exists=True, dir_okay=False, readable=True),
    ],
    source_layer: Annotated[
        str | None,
        typer.Option("--layer", help="Layer to read from a multi-layer source"),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--output-format", help="Output format: text or json"),
    ] = "text",
) -> None:
    """Show polygon, ring and vertex counts per feature."""
    setup_logging(quiet=True)
    output_format = _resolve_output_format(output_format)
    formatter = OutputFormatter(output_format=output_format)

    features, rejected, _ = read_features(input_path, layer=source_layer)
    rows = [
        (
            str(feature.id),
            len(feature.geometry.polygons),
            sum(len(polygon.rings) for polygon in feature.geometry.polygons),
            feature.geometry.vertex_count,
        )
        for feature in features
    ]
    formatter.print_layer_info(str(input_path), rows)

    for record in rejected:
        formatter.print_progress(f"  Skipped {record.feature_id}: {record.error}", style="yellow")
