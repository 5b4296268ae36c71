"""Grid sizing: how many grid units fit a target size, and where the padding goes."""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ConfigError, InternalConsistencyError
from .observe import Observer, notify

# Relative tolerance (fraction of one grid unit) for half-cell and whole-cell
# comparisons. A remainder of exactly unit/2 must count as a half cell even
# when subtraction leaves it a few ulps short.
HALF_CELL_TOLERANCE = 1e-6

# Decimal places the near-side padding is rounded to before the far side is
# derived from it.
PADDING_DECIMALS = 6

ALIGNMENTS = ("center", "near", "far")


@dataclass(frozen=True)
class AxisFill:
    """Grid fill along a single axis."""

    grid_units: float
    full_cells: int
    has_half_cell: bool
    coverage_mm: float
    total_padding: float
    padding_near: float
    padding_far: float

    @property
    def outer_mm(self) -> float:
        """Grid coverage plus padding on both sides."""
        return self.coverage_mm + self.total_padding


@dataclass(frozen=True)
class GridCalculation:
    """Result of sizing a plate in both axes."""

    unit_size_mm: float
    fill_mode: bool
    grid_units_x: float
    grid_units_y: float
    full_cells_x: int
    full_cells_y: int
    has_half_cell_x: bool
    has_half_cell_y: bool
    grid_coverage_mm_x: float
    grid_coverage_mm_y: float
    total_padding_x: float
    total_padding_y: float
    padding_near_x: float  # left
    padding_far_x: float  # right
    padding_near_y: float  # front
    padding_far_y: float  # back

    @classmethod
    def from_axes(cls, x: AxisFill, y: AxisFill, unit_size_mm: float, fill_mode: bool) -> "GridCalculation":
        return cls(
            unit_size_mm=unit_size_mm,
            fill_mode=fill_mode,
            grid_units_x=x.grid_units,
            grid_units_y=y.grid_units,
            full_cells_x=x.full_cells,
            full_cells_y=y.full_cells,
            has_half_cell_x=x.has_half_cell,
            has_half_cell_y=y.has_half_cell,
            grid_coverage_mm_x=x.coverage_mm,
            grid_coverage_mm_y=y.coverage_mm,
            total_padding_x=x.total_padding,
            total_padding_y=y.total_padding,
            padding_near_x=x.padding_near,
            padding_far_x=x.padding_far,
            padding_near_y=y.padding_near,
            padding_far_y=y.padding_far,
        )

    def axis(self, name: str) -> AxisFill:
        """Return the ``"x"`` or ``"y"`` axis as an AxisFill."""
        if name not in ("x", "y"):
            raise ValueError(f"axis must be 'x' or 'y', got: {name}")
        return AxisFill(
            grid_units=getattr(self, f"grid_units_{name}"),
            full_cells=getattr(self, f"full_cells_{name}"),
            has_half_cell=getattr(self, f"has_half_cell_{name}"),
            coverage_mm=getattr(self, f"grid_coverage_mm_{name}"),
            total_padding=getattr(self, f"total_padding_{name}"),
            padding_near=getattr(self, f"padding_near_{name}"),
            padding_far=getattr(self, f"padding_far_{name}"),
        )

    @property
    def outer_width_mm(self) -> float:
        return self.grid_coverage_mm_x + self.total_padding_x

    @property
    def outer_depth_mm(self) -> float:
        return self.grid_coverage_mm_y + self.total_padding_y


def is_half_cell_remainder(remainder_mm: float, unit_size_mm: float) -> bool:
    """True when ``remainder_mm`` is at least half a grid unit, within tolerance."""
    return remainder_mm >= unit_size_mm / 2 - HALF_CELL_TOLERANCE * unit_size_mm


def split_units(grid_units: float) -> Tuple[int, bool]:
    """Split a grid-unit count into (full cells, has half cell)."""
    full = int(math.floor(grid_units + HALF_CELL_TOLERANCE))
    return full, is_half_cell_remainder(grid_units - full, 1.0)


def distribute_padding(total_padding: float, alignment: str) -> Tuple[float, float]:
    """
    Split padding between the near and far side.

    ``near`` is computed once; ``far`` is always its exact complement so that
    ``near + far == total_padding`` holds bit for bit.

    Raises:
        ConfigError: If alignment is not one of center, near, far
        InternalConsistencyError: If the complement does not sum back exactly
    """
    if alignment == "center":
        near = round(total_padding / 2, PADDING_DECIMALS)
    elif alignment == "near":
        near = total_padding
    elif alignment == "far":
        near = 0.0
    else:
        raise ConfigError(f"padding_alignment must be one of {', '.join(ALIGNMENTS)}, got: {alignment}")
    far = total_padding - near
    if near + far != total_padding:
        # rounding pushed near below half; halving is exact in binary
        near = total_padding / 2
        far = total_padding - near
    if near + far != total_padding:
        raise InternalConsistencyError(
            f"padding split {near!r} + {far!r} does not reproduce {total_padding!r}"
        )
    return near, far


def compute_axis(
    target_size_mm: float,
    unit_size_mm: float,
    allow_half_cell: bool,
    padding_alignment: str,
    observer: Optional[Observer] = None,
) -> AxisFill:
    """
    Fit grid cells into a target length.

    Args:
        target_size_mm: Length to fill
        unit_size_mm: Grid unit size (conventionally 42)
        allow_half_cell: Whether a trailing half cell may be added
        padding_alignment: center, near or far
        observer: Optional tracing hook

    Whole cells never exceed the target, so padding is non-negative except
    when a half cell is accepted within tolerance; the padding is then
    negative by less than ``HALF_CELL_TOLERANCE * unit_size_mm``.

    Returns:
        AxisFill with grid units, coverage and padding split

    Raises:
        ConfigError: If the unit size is not positive or the target cannot hold a cell
    """
    if unit_size_mm <= 0:
        raise ConfigError(f"grid unit size must be positive, got: {unit_size_mm}")
    if target_size_mm < 0 or not is_half_cell_remainder(target_size_mm, unit_size_mm):
        raise ConfigError(
            f"target size {target_size_mm}mm is smaller than half a grid unit ({unit_size_mm / 2}mm)"
        )

    full_cells = int(math.floor(target_size_mm / unit_size_mm))
    if full_cells * unit_size_mm > target_size_mm:
        # the division rounded up to a cell the target does not hold
        full_cells -= 1
    remainder = target_size_mm - full_cells * unit_size_mm
    has_half = allow_half_cell and is_half_cell_remainder(remainder, unit_size_mm)
    grid_units = full_cells + (0.5 if has_half else 0.0)
    if grid_units <= 0:
        raise ConfigError(
            f"target size {target_size_mm}mm holds no full grid unit and half cells are disabled"
        )

    coverage = grid_units * unit_size_mm
    total_padding = target_size_mm - coverage
    near, far = distribute_padding(total_padding, padding_alignment)

    notify(
        observer,
        "grid.axis",
        target_mm=target_size_mm,
        unit_mm=unit_size_mm,
        full_cells=full_cells,
        remainder_mm=remainder,
        has_half_cell=has_half,
        padding_near=near,
        padding_far=far,
    )
    return AxisFill(
        grid_units=grid_units,
        full_cells=full_cells,
        has_half_cell=has_half,
        coverage_mm=coverage,
        total_padding=total_padding,
        padding_near=near,
        padding_far=far,
    )


def compute_grid(
    target_width_mm: float,
    target_depth_mm: float,
    unit_size_mm: float,
    allow_half_cells_x: bool,
    allow_half_cells_y: bool,
    padding_alignment: str,
    observer: Optional[Observer] = None,
) -> GridCalculation:
    """Fill-to-size mode: fit grid cells into a target width and depth."""
    x = compute_axis(target_width_mm, unit_size_mm, allow_half_cells_x, padding_alignment, observer)
    y = compute_axis(target_depth_mm, unit_size_mm, allow_half_cells_y, padding_alignment, observer)
    return GridCalculation.from_axes(x, y, unit_size_mm, fill_mode=True)


def _explicit_axis(grid_units: float, unit_size_mm: float) -> AxisFill:
    if grid_units <= 0 or (grid_units * 2) != int(grid_units * 2):
        raise ConfigError(f"grid units must be a positive multiple of 0.5, got: {grid_units}")
    full, has_half = split_units(grid_units)
    return AxisFill(
        grid_units=float(grid_units),
        full_cells=full,
        has_half_cell=has_half,
        coverage_mm=grid_units * unit_size_mm,
        total_padding=0.0,
        padding_near=0.0,
        padding_far=0.0,
    )


def grid_from_units(grid_units_x: float, grid_units_y: float, unit_size_mm: float) -> GridCalculation:
    """Explicit mode: the grid-unit count is given, padding is zero."""
    if unit_size_mm <= 0:
        raise ConfigError(f"grid unit size must be positive, got: {unit_size_mm}")
    x = _explicit_axis(grid_units_x, unit_size_mm)
    y = _explicit_axis(grid_units_y, unit_size_mm)
    return GridCalculation.from_axes(x, y, unit_size_mm, fill_mode=False)
