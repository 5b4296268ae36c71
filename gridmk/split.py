"""Splitting a baseplate into printer-bed sized segments."""

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .errors import ConfigError, InternalConsistencyError
from .grid import GridCalculation, split_units
from .observe import Observer, notify

MIN_CLOSING_WALL_MM = 0.5
CONSISTENCY_TOLERANCE_MM = 1e-9


@dataclass(frozen=True)
class OuterPadding:
    """Padding on the outer edges of the whole plate."""

    near_x: float = 0.0
    far_x: float = 0.0
    near_y: float = 0.0
    far_y: float = 0.0

    @classmethod
    def from_grid(cls, grid: GridCalculation) -> "OuterPadding":
        return cls(
            near_x=grid.padding_near_x,
            far_x=grid.padding_far_x,
            near_y=grid.padding_near_y,
            far_y=grid.padding_far_y,
        )


@dataclass(frozen=True)
class SegmentInfo:
    """One printable tile of a split baseplate."""

    segment_x: int
    segment_y: int
    grid_units_x: float
    grid_units_y: float
    unit_size_mm: float
    has_connector_left: bool = False
    has_connector_right: bool = False
    has_connector_front: bool = False
    has_connector_back: bool = False
    padding_left: float = 0.0
    padding_right: float = 0.0
    padding_front: float = 0.0
    padding_back: float = 0.0
    # Part of the padding above that was added as a closing wall
    closing_wall_left: float = 0.0
    closing_wall_right: float = 0.0
    closing_wall_front: float = 0.0
    closing_wall_back: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.segment_x}_{self.segment_y}"

    @property
    def full_cells_x(self) -> int:
        return split_units(self.grid_units_x)[0]

    @property
    def full_cells_y(self) -> int:
        return split_units(self.grid_units_y)[0]

    @property
    def has_half_cell_x(self) -> bool:
        return split_units(self.grid_units_x)[1]

    @property
    def has_half_cell_y(self) -> bool:
        return split_units(self.grid_units_y)[1]

    @property
    def grid_width_mm(self) -> float:
        return self.grid_units_x * self.unit_size_mm

    @property
    def grid_depth_mm(self) -> float:
        return self.grid_units_y * self.unit_size_mm

    @property
    def outer_width_mm(self) -> float:
        """Grid width plus left and right padding (closing walls included)."""
        return self.grid_width_mm + self.padding_left + self.padding_right

    @property
    def outer_depth_mm(self) -> float:
        return self.grid_depth_mm + self.padding_front + self.padding_back


@dataclass(frozen=True)
class SplitResult:
    """All segments of a split plate, stored as ``segments[y][x]``."""

    segments: Tuple[Tuple[SegmentInfo, ...], ...]
    segments_x: int
    segments_y: int
    total_segments: int
    max_segment_units_x: int
    max_segment_units_y: int
    needs_split: bool

    def segment(self, x: int, y: int) -> SegmentInfo:
        return self.segments[y][x]

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.segments_x and 0 <= y < self.segments_y

    def iter_segments(self) -> Iterator[SegmentInfo]:
        """Segments in row-major order."""
        for row in self.segments:
            yield from row


def apply_closing_wall(grid_units: float, padding: float) -> Tuple[float, float]:
    """
    Padding for an edge that may end on a half cell.

    Half cells sit at the high end of a segment, so only the far edge of an
    axis can terminate one. Returns (padding, amount added).
    """
    _, has_half = split_units(grid_units)
    if has_half and padding < MIN_CLOSING_WALL_MM:
        return MIN_CLOSING_WALL_MM, MIN_CLOSING_WALL_MM - padding
    return padding, 0.0


def segment_capacity(
    bed_size_mm: float,
    unit_size_mm: float,
    padding_near: float,
    padding_far: float,
    ends_on_half_cell: bool,
) -> int:
    """Whole grid units that fit on the bed next to the worst-case edge padding."""
    far = max(padding_far, MIN_CLOSING_WALL_MM) if ends_on_half_cell else padding_far
    worst_case = max(padding_near, far)
    return max(1, int(math.floor((bed_size_mm - worst_case) / unit_size_mm)))


def axis_capacity(
    grid_units: float,
    bed_size_mm: float,
    unit_size_mm: float,
    padding_near: float,
    padding_far: float,
) -> int:
    """
    Segment capacity along one axis of a plate.

    When the whole axis fits in one segment, that segment carries both outer
    paddings; if they do not fit on the bed together the capacity is lowered
    so the axis is split and each end segment carries only one of them.
    """
    ends_on_half = split_units(grid_units)[1]
    capacity = segment_capacity(bed_size_mm, unit_size_mm, padding_near, padding_far, ends_on_half)
    if grid_units <= capacity:
        far = max(padding_far, MIN_CLOSING_WALL_MM) if ends_on_half else padding_far
        if grid_units * unit_size_mm + padding_near + far > bed_size_mm:
            capacity = max(1, int(math.floor((bed_size_mm - padding_near - far) / unit_size_mm)))
    return capacity


def tile_axis(grid_units: float, capacity: int) -> List[float]:
    """
    Extents of consecutive segments along one axis.

    Every segment but the last takes ``capacity`` whole units, so interior
    boundaries never fall inside a half cell; the last takes what remains,
    half cell included.
    """
    count = int(math.ceil(grid_units / capacity))
    extents: List[float] = []
    remaining = grid_units
    for _ in range(count - 1):
        extent = float(math.floor(min(capacity, remaining)))
        extents.append(extent)
        remaining -= extent
    extents.append(remaining)
    return extents


def split_for_bed(
    grid_units_x: float,
    grid_units_y: float,
    bed_width_mm: float,
    bed_depth_mm: float,
    unit_size_mm: float,
    connector_enabled: bool,
    outer_padding: Optional[OuterPadding] = None,
    observer: Optional[Observer] = None,
) -> SplitResult:
    """
    Partition a plate into segments that each fit the printer bed.

    Args:
        grid_units_x: Total grid units across the plate (may end in .5)
        grid_units_y: Total grid units front to back
        bed_width_mm: Printer bed width
        bed_depth_mm: Printer bed depth
        unit_size_mm: Grid unit size
        connector_enabled: Whether interior boundaries get interlocking edges
        outer_padding: Padding on the plate's outer edges (zero if None)
        observer: Optional tracing hook

    Returns:
        SplitResult with segments laid out row-major as ``segments[y][x]``

    Raises:
        ConfigError: If any size is not positive
    """
    if unit_size_mm <= 0:
        raise ConfigError(f"grid unit size must be positive, got: {unit_size_mm}")
    if grid_units_x <= 0 or grid_units_y <= 0:
        raise ConfigError(f"grid units must be positive, got: {grid_units_x}x{grid_units_y}")
    if bed_width_mm <= 0 or bed_depth_mm <= 0:
        raise ConfigError(f"printer bed must have positive dimensions, got: {bed_width_mm}x{bed_depth_mm}")
    pad = outer_padding or OuterPadding()

    max_x = axis_capacity(grid_units_x, bed_width_mm, unit_size_mm, pad.near_x, pad.far_x)
    max_y = axis_capacity(grid_units_y, bed_depth_mm, unit_size_mm, pad.near_y, pad.far_y)
    extents_x = tile_axis(grid_units_x, max_x)
    extents_y = tile_axis(grid_units_y, max_y)
    count_x = len(extents_x)
    count_y = len(extents_y)
    notify(
        observer,
        "split.tiling",
        max_units_x=max_x,
        max_units_y=max_y,
        extents_x=tuple(extents_x),
        extents_y=tuple(extents_y),
    )

    rows: List[Tuple[SegmentInfo, ...]] = []
    for sy, units_y in enumerate(extents_y):
        front = pad.near_y if sy == 0 else 0.0
        back = pad.far_y if sy == count_y - 1 else 0.0
        back, wall_back = apply_closing_wall(units_y, back)
        row: List[SegmentInfo] = []
        for sx, units_x in enumerate(extents_x):
            left = pad.near_x if sx == 0 else 0.0
            right = pad.far_x if sx == count_x - 1 else 0.0
            right, wall_right = apply_closing_wall(units_x, right)
            if wall_right or wall_back:
                notify(
                    observer,
                    "split.closing_wall",
                    segment=(sx, sy),
                    right=wall_right,
                    back=wall_back,
                    interior=(sx < count_x - 1 and wall_right > 0) or (sy < count_y - 1 and wall_back > 0),
                )
            row.append(
                SegmentInfo(
                    segment_x=sx,
                    segment_y=sy,
                    grid_units_x=units_x,
                    grid_units_y=units_y,
                    unit_size_mm=unit_size_mm,
                    has_connector_left=connector_enabled and sx > 0,
                    has_connector_right=connector_enabled and sx < count_x - 1,
                    has_connector_front=connector_enabled and sy > 0,
                    has_connector_back=connector_enabled and sy < count_y - 1,
                    padding_left=left,
                    padding_right=right,
                    padding_front=front,
                    padding_back=back,
                    closing_wall_right=wall_right,
                    closing_wall_back=wall_back,
                )
            )
        rows.append(tuple(row))

    return SplitResult(
        segments=tuple(rows),
        segments_x=count_x,
        segments_y=count_y,
        total_segments=count_x * count_y,
        max_segment_units_x=max_x,
        max_segment_units_y=max_y,
        needs_split=count_x > 1 or count_y > 1,
    )


def check_split_consistency(split: SplitResult, grid: GridCalculation) -> None:
    """
    Verify that the segments add back up to the plate they came from.

    Every row must reproduce the plate width and every column the plate
    depth (grid coverage plus assigned padding, closing walls excluded).

    Raises:
        InternalConsistencyError: On any mismatch
    """
    expected_x = grid.grid_coverage_mm_x + grid.total_padding_x
    expected_y = grid.grid_coverage_mm_y + grid.total_padding_y

    for row in split.segments:
        units = sum(s.grid_units_x for s in row)
        width = sum(
            s.grid_width_mm + s.padding_left + s.padding_right - s.closing_wall_left - s.closing_wall_right
            for s in row
        )
        if units != grid.grid_units_x or abs(width - expected_x) > CONSISTENCY_TOLERANCE_MM:
            raise InternalConsistencyError(
                f"segment row {row[0].segment_y}: {units} units / {width}mm, "
                f"expected {grid.grid_units_x} units / {expected_x}mm"
            )

    for sx in range(split.segments_x):
        column = [split.segments[sy][sx] for sy in range(split.segments_y)]
        units = sum(s.grid_units_y for s in column)
        depth = sum(
            s.grid_depth_mm + s.padding_front + s.padding_back - s.closing_wall_front - s.closing_wall_back
            for s in column
        )
        if units != grid.grid_units_y or abs(depth - expected_y) > CONSISTENCY_TOLERANCE_MM:
            raise InternalConsistencyError(
                f"segment column {sx}: {units} units / {depth}mm, "
                f"expected {grid.grid_units_y} units / {expected_y}mm"
            )


def split_baseplate(
    config, grid: GridCalculation, observer: Optional[Observer] = None
) -> SplitResult:
    """Split a plate described by a BaseplateConfig and its grid calculation."""
    return split_for_bed(
        grid.grid_units_x,
        grid.grid_units_y,
        config.printer_bed_width,
        config.printer_bed_depth,
        grid.unit_size_mm,
        config.connector_enabled,
        OuterPadding.from_grid(grid),
        observer,
    )
