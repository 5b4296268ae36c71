"""End-to-end generation: config in, descriptions, manifest and meshes out."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .config import BaseplateConfig, BoxConfig
from .connectors import edge_plan
from .errors import ConfigError
from .geometry import EmittedDescription, emit_baseplate, emit_box, emit_segment
from .grid import GridCalculation, compute_grid, grid_from_units
from .manifest import build_manifest
from .observe import Observer
from .render import OpenSCADRenderer, RenderOutcome
from .split import SplitResult, check_split_consistency, split_baseplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Everything produced for one request."""

    kind: str  # box or baseplate
    descriptions: Tuple[EmittedDescription, ...]
    manifest: Optional[Dict[str, Any]] = None  # split baseplates only
    outcomes: Tuple[RenderOutcome, ...] = ()  # empty unless rendered
    grid: Optional[GridCalculation] = None
    split: Optional[SplitResult] = None

    @property
    def failures(self) -> Tuple[RenderOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)


def compute_baseplate_grid(config: BaseplateConfig, observer: Optional[Observer] = None) -> GridCalculation:
    """Grid calculation for a baseplate in either sizing mode."""
    if config.fill_mode:
        return compute_grid(
            config.target_width_mm,
            config.target_depth_mm,
            config.grid_size,
            config.allow_half_cells_x,
            config.allow_half_cells_y,
            config.padding_alignment,
            observer,
        )
    return grid_from_units(config.width, config.depth, config.grid_size)


def _render(
    descriptions: Tuple[EmittedDescription, ...],
    renderer: Optional[OpenSCADRenderer],
    out_dir: Optional[Union[str, Path]],
) -> Tuple[RenderOutcome, ...]:
    if renderer is None:
        return ()
    if out_dir is None:
        raise ConfigError("an output directory is required to render meshes")
    return tuple(renderer.render_many(descriptions, out_dir))


def generate_box(
    config: BoxConfig,
    renderer: Optional[OpenSCADRenderer] = None,
    out_dir: Optional[Union[str, Path]] = None,
) -> GenerationResult:
    """Emit (and optionally render) one box."""
    config.validate()
    description = emit_box(config)
    logger.info("box %sx%sx%s emitted", config.width, config.depth, config.height)
    descriptions = (description,)
    return GenerationResult(kind="box", descriptions=descriptions, outcomes=_render(descriptions, renderer, out_dir))


def generate_baseplate(
    config: BaseplateConfig,
    box: Optional[BoxConfig] = None,
    renderer: Optional[OpenSCADRenderer] = None,
    out_dir: Optional[Union[str, Path]] = None,
    emit_workers: int = 1,
    observer: Optional[Observer] = None,
) -> GenerationResult:
    """
    Emit (and optionally render) a baseplate, split into segments if requested.

    Args:
        config: Baseplate configuration
        box: Box whose foot the sockets copy when ``sync_socket_with_foot`` is set
        renderer: Renders the descriptions when given
        out_dir: Where meshes go; required with a renderer
        emit_workers: Segments emitted concurrently (1 = sequential)
        observer: Optional tracing hook for the grid and split calculators

    Returns:
        GenerationResult; for split plates one description per segment in
        row-major order plus a manifest

    Raises:
        ConfigError: On invalid configuration or edge overrides
        InternalConsistencyError: If the split does not add back up to the plate
    """
    config.validate()
    if emit_workers < 1:
        raise ConfigError("emit_workers must be at least 1")
    grid = compute_baseplate_grid(config, observer)

    if not config.split_enabled:
        descriptions = (emit_baseplate(config, grid, box),)
        logger.info("baseplate %sx%s units emitted", grid.grid_units_x, grid.grid_units_y)
        return GenerationResult(
            kind="baseplate",
            descriptions=descriptions,
            outcomes=_render(descriptions, renderer, out_dir),
            grid=grid,
        )

    split = split_baseplate(config, grid, observer)
    check_split_consistency(split, grid)
    plan = edge_plan(split, config.edge_overrides)
    segments = list(split.iter_segments())

    def emit(segment):
        return emit_segment(config, split, segment, plan[(segment.segment_x, segment.segment_y)], box)

    if emit_workers > 1 and len(segments) > 1:
        with ThreadPoolExecutor(max_workers=emit_workers) as pool:
            descriptions = tuple(pool.map(emit, segments))
    else:
        descriptions = tuple(emit(s) for s in segments)

    logger.info(
        "baseplate %sx%s units split into %dx%d segments",
        grid.grid_units_x,
        grid.grid_units_y,
        split.segments_x,
        split.segments_y,
    )
    return GenerationResult(
        kind="baseplate",
        descriptions=descriptions,
        manifest=build_manifest(split, plan, config.name),
        outcomes=_render(descriptions, renderer, out_dir),
        grid=grid,
        split=split,
    )
