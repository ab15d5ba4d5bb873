"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import MosaicError
from tile_mosaic.grid import plan_grid
from tile_mosaic.image_io import open_rgba
from tile_mosaic.pipeline import prepare_reference, run_pipeline

app = typer.Typer(
    name="tile-mosaic",
    help="Recreate an image as a photomosaic of tinted tiles.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
    )


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]✗[/red] {escape(str(exc))}")
    raise typer.Exit(1) from exc


# Defaults come from MosaicConfig - single source of truth
_DEFAULTS = MosaicConfig()


# -- build command -----------------------------------------------------

@app.command()
def build(
    tiles_dir: Path = typer.Option(
        ..., "--dir", "-d", help="Folder with candidate tile images",
    ),
    reference: Path = typer.Option(
        ..., "--ref", "-p", help="Image to recreate",
    ),
    columns: int = typer.Option(
        _DEFAULTS.columns, "--cols", "-c", min=1,
        help="Grid columns (raised to the next divisor of the width if needed)",
    ),
    rows: int = typer.Option(
        _DEFAULTS.rows, "--rows", "-r", min=1,
        help="Grid rows (raised to the next divisor of the height if needed)",
    ),
    alpha: float = typer.Option(
        _DEFAULTS.alpha, "--alpha", "-a", min=0.0, max=1.0,
        help="How strongly tiles are tinted towards their cell's dominant colour",
    ),
    square: bool = typer.Option(
        _DEFAULTS.square_resize, "--square/--no-square",
        help="Resize the reference to width x width first",
    ),
    scale: float = typer.Option(
        _DEFAULTS.scale_factor, "--scale", "-s", min=0.0,
        help="Multiply the reference size by this factor (0 = keep)",
    ),
    seed: int | None = typer.Option(
        _DEFAULTS.seed, "--seed", help="Tile-selection seed (None = random)",
    ),
    workers: int | None = typer.Option(
        _DEFAULTS.workers, "--workers", "-w", min=1, help="Compositing threads",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output file (default: output.png beside --ref)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build a mosaic of REF from the images in DIR."""
    _setup_logging(verbose)
    t_total = time.perf_counter()

    try:
        cfg = MosaicConfig(
            columns=columns,
            rows=rows,
            alpha=alpha,
            square_resize=square,
            scale_factor=scale,
            seed=seed,
            workers=workers,
            output_path=output,
            verbose=verbose,
        )
    except ValueError as exc:
        _fail(exc)

    console.print(Panel.fit(
        f"[bold]TILE MOSAIC[/bold]\n"
        f"Reference: {escape(str(reference))}  |  Tiles: {escape(str(tiles_dir))}\n"
        f"Grid: {cfg.columns}x{cfg.rows}  |  Alpha: {cfg.alpha}\n"
        f"Square: {cfg.square_resize}  |  Scale: {cfg.scale_factor}",
        border_style="cyan",
    ))

    try:
        out, result = run_pipeline(cfg, reference, tiles_dir)
    except (MosaicError, OSError, ValueError) as exc:
        _fail(exc)

    elapsed = time.perf_counter() - t_total
    console.print(
        f"  [green]✓[/green] {escape(str(out))}  "
        f"[dim]{result.width}x{result.height} px  "
        f"grid={result.cols}x{result.rows}  time={elapsed:.1f}s[/dim]"
    )


# -- plan command ------------------------------------------------------

@app.command()
def plan(
    reference: Path = typer.Argument(..., help="Path to the reference image"),
    columns: int = typer.Option(_DEFAULTS.columns, "--cols", "-c", min=1),
    rows: int = typer.Option(_DEFAULTS.rows, "--rows", "-r", min=1),
    square: bool = typer.Option(_DEFAULTS.square_resize, "--square/--no-square"),
    scale: float = typer.Option(_DEFAULTS.scale_factor, "--scale", "-s", min=0.0),
) -> None:
    """Show the grid a build would use, without compositing."""
    try:
        img = prepare_reference(open_rgba(reference), square, scale)
        w, h = img.size
        cols, grid_rows = plan_grid(w, h, columns, rows)
    except (MosaicError, ValueError) as exc:
        _fail(exc)

    console.print(
        f"{w}x{h} px → {cols}x{grid_rows} cells of "
        f"{w // cols}x{h // grid_rows} px"
    )


if __name__ == "__main__":
    app()
