"""Interlocking edges between baseplate segments.

Two concerns live here: deciding which side of each shared boundary carries
the male teeth (with optional manual overrides), and building the 2-D tooth
outline for each edge-pattern family. Outlines are in a local frame with the
segment edge on y = 0 and the tooth protruding toward +y, centred on x = 0.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from shapely import affinity
from shapely.geometry import LineString, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from .errors import ConfigError, InternalConsistencyError
from .grid import HALF_CELL_TOLERANCE
from .split import SegmentInfo, SplitResult

Point2 = Tuple[float, float]

EDGE_PATTERNS = (
    "rectangular",
    "triangular",
    "dovetail",
    "puzzle",
    "tslot",
    "puzzle_smooth",
    "tslot_smooth",
    "wineglass",
)

ARC_QUAD_SEGS = 8  # 32 segments per full circle
OUTLINE_DECIMALS = 6
CUT_OVERSHOOT_MM = 0.1  # female cavities extend past the edge by this much
SMOOTH_FILLET_RATIO = 0.08  # fillet radius as a fraction of tooth width
MAX_CONCAVE_FRACTION = 0.9
PUZZLE_BULB_RATIO = 0.4  # bulb radius as a fraction of tooth width
BULB_PATTERNS = ("puzzle", "puzzle_smooth")


class EdgeType(Enum):
    """Role of one segment edge at a shared boundary."""

    NONE = "none"
    MALE = "male"
    FEMALE = "female"

    def complement(self) -> "EdgeType":
        if self is EdgeType.MALE:
            return EdgeType.FEMALE
        if self is EdgeType.FEMALE:
            return EdgeType.MALE
        return EdgeType.NONE

    @classmethod
    def parse(cls, value) -> "EdgeType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(f"edge type must be none, male or female, got: {value}") from None


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"
    FRONT = "front"
    BACK = "back"

    @property
    def opposite(self) -> "Side":
        return _OPPOSITE[self]

    @property
    def step(self) -> Tuple[int, int]:
        """Offset to the neighbouring segment across this side."""
        return _STEP[self]

    @property
    def axis(self) -> str:
        return "x" if self in (Side.LEFT, Side.RIGHT) else "y"


_OPPOSITE = {Side.LEFT: Side.RIGHT, Side.RIGHT: Side.LEFT, Side.FRONT: Side.BACK, Side.BACK: Side.FRONT}
_STEP = {Side.LEFT: (-1, 0), Side.RIGHT: (1, 0), Side.FRONT: (0, -1), Side.BACK: (0, 1)}
SIDES = (Side.LEFT, Side.RIGHT, Side.FRONT, Side.BACK)


@dataclass(frozen=True)
class SegmentEdgeOverride:
    """Manual edge roles for one segment; None leaves an edge to the default rule."""

    segment_x: int
    segment_y: int
    left_edge: Optional[EdgeType] = None
    right_edge: Optional[EdgeType] = None
    front_edge: Optional[EdgeType] = None
    back_edge: Optional[EdgeType] = None

    def edge(self, side: Side) -> Optional[EdgeType]:
        return getattr(self, f"{side.value}_edge")

    @classmethod
    def from_record(cls, record: Mapping) -> "SegmentEdgeOverride":
        """Build from a dict with snake_case or camelCase keys."""
        aliases = {
            "segmentX": "segment_x",
            "segmentY": "segment_y",
            "leftEdge": "left_edge",
            "rightEdge": "right_edge",
            "frontEdge": "front_edge",
            "backEdge": "back_edge",
        }
        data = {aliases.get(k, k): v for k, v in record.items()}
        unknown = set(data) - {"segment_x", "segment_y", "left_edge", "right_edge", "front_edge", "back_edge"}
        if unknown:
            raise ConfigError(f"unknown edge override fields: {', '.join(sorted(unknown))}")
        if "segment_x" not in data or "segment_y" not in data:
            raise ConfigError("edge override needs segment_x and segment_y")
        edges = {
            f"{side.value}_edge": EdgeType.parse(data[f"{side.value}_edge"])
            for side in SIDES
            if data.get(f"{side.value}_edge") is not None
        }
        return cls(segment_x=int(data["segment_x"]), segment_y=int(data["segment_y"]), **edges)

    def to_record(self) -> Dict[str, object]:
        record: Dict[str, object] = {"segment_x": self.segment_x, "segment_y": self.segment_y}
        for side in SIDES:
            edge = self.edge(side)
            record[f"{side.value}_edge"] = edge.value if edge is not None else None
        return record


@dataclass(frozen=True)
class SegmentEdges:
    """Resolved edge roles for one segment."""

    left: EdgeType
    right: EdgeType
    front: EdgeType
    back: EdgeType

    def edge(self, side: Side) -> EdgeType:
        return getattr(self, side.value)

    def as_dict(self) -> Dict[str, str]:
        return {side.value: self.edge(side).value for side in SIDES}


@dataclass(frozen=True)
class PatternParams:
    """Shape parameters used by the smooth and wineglass patterns."""

    concave_depth: float = 50.0  # percent of the base half-width removed at the waist
    wineglass_aspect_ratio: float = 1.0  # bowl width / height


def _index_overrides(
    overrides: Iterable[SegmentEdgeOverride],
) -> Dict[Tuple[int, int], SegmentEdgeOverride]:
    index: Dict[Tuple[int, int], SegmentEdgeOverride] = {}
    for override in overrides:
        key = (override.segment_x, override.segment_y)
        if key in index:
            raise ConfigError(f"duplicate edge override for segment {key}")
        index[key] = override
    return index


def default_edge(segment: SegmentInfo, side: Side) -> EdgeType:
    """Parity rule: the segment nearer the origin is male at a shared boundary."""
    if not getattr(segment, f"has_connector_{side.value}"):
        return EdgeType.NONE
    if side in (Side.RIGHT, Side.BACK):
        return EdgeType.MALE
    return EdgeType.FEMALE


def _resolve(segment: SegmentInfo, side: Side, index: Mapping[Tuple[int, int], SegmentEdgeOverride]) -> EdgeType:
    own = index.get((segment.segment_x, segment.segment_y))
    if own is not None and own.edge(side) is not None:
        return own.edge(side)
    dx, dy = side.step
    neighbour = index.get((segment.segment_x + dx, segment.segment_y + dy))
    if neighbour is not None and neighbour.edge(side.opposite) is not None:
        return neighbour.edge(side.opposite).complement()
    return default_edge(segment, side)


def resolve_edge(
    segment: SegmentInfo,
    side: Side,
    overrides: Sequence[SegmentEdgeOverride] = (),
) -> EdgeType:
    """
    Edge role of one side of a segment.

    An explicit override for this edge wins; otherwise an override on the
    neighbour's matching edge decides (as its complement); otherwise the
    default parity rule applies.
    """
    return _resolve(segment, side, _index_overrides(overrides))


def validate_overrides(split: SplitResult, overrides: Sequence[SegmentEdgeOverride]) -> None:
    """
    Reject overrides that cannot produce a consistent assembly.

    Raises:
        ConfigError: For unknown segments, connectors on outer edges, or a
            boundary whose two sides are not male/female or none/none
    """
    index = _index_overrides(overrides)
    for (x, y), override in index.items():
        if not split.contains(x, y):
            raise ConfigError(
                f"edge override for segment ({x}, {y}) outside the "
                f"{split.segments_x}x{split.segments_y} segment grid"
            )
        for side in SIDES:
            dx, dy = side.step
            edge = override.edge(side)
            if edge not in (None, EdgeType.NONE) and not split.contains(x + dx, y + dy):
                raise ConfigError(f"segment ({x}, {y}) {side.value} edge is an outer edge and cannot be {edge.value}")

    for segment in split.iter_segments():
        for side in (Side.RIGHT, Side.BACK):
            dx, dy = side.step
            nx, ny = segment.segment_x + dx, segment.segment_y + dy
            if not split.contains(nx, ny):
                continue
            here = _resolve(segment, side, index)
            there = _resolve(split.segment(nx, ny), side.opposite, index)
            if there is not here.complement():
                raise ConfigError(
                    f"contradictory edge overrides: segment ({segment.segment_x}, {segment.segment_y}) "
                    f"{side.value}={here.value} but segment ({nx}, {ny}) {side.opposite.value}={there.value}"
                )


def edge_plan(
    split: SplitResult, overrides: Sequence[SegmentEdgeOverride] = ()
) -> Dict[Tuple[int, int], SegmentEdges]:
    """Validated edge roles for every segment, keyed by (x, y)."""
    validate_overrides(split, overrides)
    index = _index_overrides(overrides)
    plan: Dict[Tuple[int, int], SegmentEdges] = {}
    for segment in split.iter_segments():
        plan[(segment.segment_x, segment.segment_y)] = SegmentEdges(
            **{side.value: _resolve(segment, side, index) for side in SIDES}
        )
    return plan


def tooth_positions(edge_units: float, unit_size_mm: float) -> List[float]:
    """
    Tooth centres along an edge, measured from the edge's grid origin.

    Teeth sit on interior cell boundaries, under the ribs between sockets.
    An edge spanning one cell or less gets a single centred tooth.
    """
    boundaries = int(math.ceil(edge_units - HALF_CELL_TOLERANCE)) - 1
    if boundaries < 1:
        return [edge_units * unit_size_mm / 2]
    return [i * unit_size_mm for i in range(1, boundaries + 1)]


# --- pattern outlines (male) -------------------------------------------------

def _concave_flank(base_hw: float, waist_hw: float, height: float, steps: int = ARC_QUAD_SEGS) -> List[Point2]:
    """Right-hand flank curving in from the base to the waist (quarter sine)."""
    points = []
    for i in range(steps + 1):
        t = i / steps
        points.append((base_hw - (base_hw - waist_hw) * math.sin(t * math.pi / 2), t * height))
    return points


def _neck(base_hw: float, waist_hw: float, height: float) -> Polygon:
    right = _concave_flank(base_hw, waist_hw, height)
    left = [(-x, y) for x, y in reversed(right)]
    return Polygon(right + left)


def _waist(base_hw: float, params: PatternParams, floor_hw: float) -> float:
    fraction = min(max(params.concave_depth / 100.0, 0.0), MAX_CONCAVE_FRACTION)
    return max(base_hw * (1 - fraction), floor_hw)


def _rectangular(w: float, d: float, params: PatternParams) -> Polygon:
    return box(-w / 2, 0, w / 2, d)


def _triangular(w: float, d: float, params: PatternParams) -> Polygon:
    return Polygon([(-w / 2, 0), (w / 2, 0), (0, d)])


def _dovetail(w: float, d: float, params: PatternParams) -> Polygon:
    base = w * 0.7
    return Polygon([(-base / 2, 0), (base / 2, 0), (w / 2, d), (-w / 2, d)])


def _bulb_neck_length(w: float, d: float) -> Tuple[float, float]:
    radius = w * PUZZLE_BULB_RATIO
    neck = d - radius
    if neck <= 0:
        raise ConfigError(f"tooth depth {d}mm too shallow for a {radius}mm puzzle bulb")
    return radius, neck


def _puzzle(w: float, d: float, params: PatternParams) -> Polygon:
    radius, neck = _bulb_neck_length(w, d)
    neck_w = w * 0.5
    return unary_union([
        box(-neck_w / 2, 0, neck_w / 2, neck),
        Point(0, neck).buffer(radius, quad_segs=ARC_QUAD_SEGS),
    ])


def _tslot(w: float, d: float, params: PatternParams) -> Polygon:
    stem_w = w * 0.4
    stem_d = d - d * 0.35
    return unary_union([box(-stem_w / 2, 0, stem_w / 2, stem_d), box(-w / 2, stem_d, w / 2, d)])


def _puzzle_smooth(w: float, d: float, params: PatternParams) -> Polygon:
    radius, neck = _bulb_neck_length(w, d)
    base_hw = w * 0.4
    waist_hw = _waist(base_hw, params, w * 0.1)
    shape = unary_union([
        _neck(base_hw, waist_hw, neck),
        Point(0, neck).buffer(radius, quad_segs=ARC_QUAD_SEGS),
    ])
    return _smooth(shape, w * SMOOTH_FILLET_RATIO)


def _tslot_smooth(w: float, d: float, params: PatternParams) -> Polygon:
    stem_len = d - d * 0.3
    base_hw = w * 0.3
    waist_hw = _waist(base_hw, params, w * 0.1)
    shape = unary_union([_neck(base_hw, waist_hw, stem_len), box(-w / 2, stem_len, w / 2, d)])
    return _smooth(shape, w * SMOOTH_FILLET_RATIO)


def _wineglass(w: float, d: float, params: PatternParams) -> Polygon:
    bowl_ry = d * 0.3
    bowl_rx = bowl_ry * params.wineglass_aspect_ratio
    bowl_cy = d - bowl_ry
    base_hw = w / 2
    waist_hw = _waist(base_hw, params, w * 0.1)
    bowl = affinity.scale(
        Point(0, bowl_cy).buffer(1.0, quad_segs=ARC_QUAD_SEGS), bowl_rx, bowl_ry, origin=(0, bowl_cy)
    )
    shape = unary_union([_neck(base_hw, waist_hw, bowl_cy), bowl])
    return _smooth(shape, w * SMOOTH_FILLET_RATIO)


_PATTERNS = {
    "rectangular": _rectangular,
    "triangular": _triangular,
    "dovetail": _dovetail,
    "puzzle": _puzzle,
    "tslot": _tslot,
    "puzzle_smooth": _puzzle_smooth,
    "tslot_smooth": _tslot_smooth,
    "wineglass": _wineglass,
}


def _root_span(shape: Polygon) -> Tuple[float, float]:
    """x extent where the outline meets the edge line y = 0."""
    minx, _, maxx, _ = shape.bounds
    root = shape.intersection(LineString([(minx - 1, 0), (maxx + 1, 0)]))
    if root.is_empty:
        raise InternalConsistencyError("tooth outline does not touch the edge line")
    x0, _, x1, _ = root.bounds
    return x0, x1


def _only_polygon(shape) -> Polygon:
    if isinstance(shape, Polygon):
        return shape
    raise InternalConsistencyError(f"tooth outline is a {shape.geom_type}, expected a single polygon")


def _smooth(shape: Polygon, radius: float) -> Polygon:
    """Round every corner above the edge line with ``radius``."""
    x0, x1 = _root_span(shape)
    # extend below the edge so the root corners are not rounded away
    extended = unary_union([shape, box(x0, -2 * radius, x1, 0)])
    rounded = extended.buffer(radius, quad_segs=ARC_QUAD_SEGS)
    rounded = rounded.buffer(-2 * radius, quad_segs=ARC_QUAD_SEGS)
    rounded = rounded.buffer(radius, quad_segs=ARC_QUAD_SEGS)
    minx, _, maxx, maxy = rounded.bounds
    return _only_polygon(rounded.intersection(box(minx - 1, 0, maxx + 1, maxy + 1)))


def _outline(shape: Polygon) -> List[Point2]:
    ring = orient(_only_polygon(shape), sign=1.0).exterior.coords
    points: List[Point2] = []
    for x, y in list(ring)[:-1]:
        point = (round(x, OUTLINE_DECIMALS) + 0.0, round(y, OUTLINE_DECIMALS) + 0.0)
        if not points or points[-1] != point:
            points.append(point)
    if len(points) > 1 and points[0] == points[-1]:
        points.pop()
    return points


def male_shape(pattern: str, tooth_width_mm: float, tooth_depth_mm: float, params: Optional[PatternParams] = None) -> Polygon:
    """Male tooth as a shapely polygon (edge on y = 0, protruding to +y)."""
    if pattern not in _PATTERNS:
        raise ConfigError(f"edge_pattern must be one of {', '.join(EDGE_PATTERNS)}, got: {pattern}")
    if tooth_width_mm <= 0 or tooth_depth_mm <= 0:
        raise ConfigError(f"tooth width and depth must be positive, got: {tooth_width_mm}x{tooth_depth_mm}")
    return _only_polygon(_PATTERNS[pattern](tooth_width_mm, tooth_depth_mm, params or PatternParams()))


def female_shape(male: Polygon, tolerance_mm: float) -> Polygon:
    """Cavity for ``male``: grown by the clearance and open through the edge."""
    if tolerance_mm < 0:
        raise ConfigError(f"connector tolerance must be non-negative, got: {tolerance_mm}")
    x0, x1 = _root_span(male)
    grown = male.buffer(tolerance_mm, join_style="mitre") if tolerance_mm > 0 else male
    mouth = box(x0 - tolerance_mm, -(tolerance_mm + CUT_OVERSHOOT_MM), x1 + tolerance_mm, 0)
    return _only_polygon(unary_union([grown, mouth]))


def build_tooth_profile(
    edge_type: EdgeType,
    pattern: str,
    tooth_width_mm: float,
    tooth_depth_mm: float,
    tolerance_mm: float,
    params: Optional[PatternParams] = None,
) -> List[Point2]:
    """
    Outline of one tooth (male) or tooth cavity (female).

    Args:
        edge_type: none, male or female
        pattern: One of EDGE_PATTERNS
        tooth_width_mm: Width of the tooth at its base
        tooth_depth_mm: How far the tooth reaches past the edge
        tolerance_mm: Clearance between a tooth and its cavity
        params: Shape parameters for the smooth and wineglass patterns

    Returns:
        Counter-clockwise list of (x, y) points, without a closing repeat;
        empty for EdgeType.NONE
    """
    edge_type = EdgeType.parse(edge_type)
    if edge_type is EdgeType.NONE:
        return []
    male = male_shape(pattern, tooth_width_mm, tooth_depth_mm, params)
    if edge_type is EdgeType.MALE:
        return _outline(male)
    return _outline(female_shape(male, tolerance_mm))
