"""SolidPython geometry building for boxes, baseplates and baseplate segments.

Every emitted description starts with a fixed header: a comment naming the
part, then one ``name = value;`` declaration per resolved parameter in a
fixed order, then the SolidPython-rendered geometry. Numbers are quantised
and formatted to four decimals so identical input gives identical text.
Free-text fields (labels, names) are metadata and are never written out.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from solid import (
    cube,
    cylinder,
    difference,
    hull,
    linear_extrude,
    offset,
    polygon,
    rotate,
    scad_render,
    square,
    translate,
    union,
)

from .config import BaseplateConfig, BoxConfig
from .connectors import EdgeType, SegmentEdges, Side, build_tooth_profile, tooth_positions
from .errors import ConfigError, InternalConsistencyError
from .grid import GridCalculation, split_units
from .profile import Profile, compute_foot_profile, compute_socket_profile, resolve_socket_params
from .split import SegmentInfo, SplitResult, apply_closing_wall

logger = logging.getLogger(__name__)

DECIMALS = 4
HEIGHT_UNIT_MM = 7.0
CELL_CLEARANCE_MM = 0.25  # per side, between a foot or socket and its cell
SOCKET_CORNER_RADIUS_MM = 3.75
MIN_BOTTOM_RADIUS_MM = 0.5
HOLE_INSET_MM = 4.8  # hole centres from the cell corner
COUNTERSINK_DEPTH_MM = 2.5
COUNTERSINK_TOP_OFFSET_MM = 2.4
COUNTERSINK_SCALE = 2.5
WEIGHT_CAVITY_SIZE_MM = 21.4
WEIGHT_CAVITY_DEPTH_MM = 4.0
BOTTOM_OVERHANG_CHAMFER_MM = 0.3
DIVIDER_THICKNESS_MM = 1.2
LABEL_TAB_REACH_MM = 12.0
LABEL_TAB_THICKNESS_MM = 1.2
LABEL_TAB_WIDTH_FRACTION = 0.6
LIP_SCALE = {"perfect_fit": 1.0, "standard": 1.0, "reduced": 0.6, "minimum": 0.4}
BOX_SEGMENTS = 32
SLAB_MM = 0.01  # thickness of the outlines a hull is stretched over
EPS = 0.1  # overshoot for cuts through a face

_TOKEN = re.compile(r"^[a-z0-9_]+$")

# Rotation that turns the +y tooth frame toward each direction
_TOOTH_ROTATION = {(0, 1): 0, (0, -1): 180, (1, 0): -90, (-1, 0): 90}
_OUTWARD = {Side.LEFT: (-1, 0), Side.RIGHT: (1, 0), Side.FRONT: (0, -1), Side.BACK: (0, 1)}


@dataclass(frozen=True)
class EmittedDescription:
    """One self-contained OpenSCAD program plus the parameters declared in it."""

    kind: str  # box, baseplate or segment
    key: str
    scad_text: str
    parameters: Tuple[Tuple[str, Any], ...]

    @property
    def artifact_name(self) -> str:
        if self.kind == "segment":
            return f"baseplate_segment_{self.key}"
        return self.kind


@dataclass(frozen=True)
class Cell:
    """A full or half grid cell, positioned from the grid origin."""

    x: float
    y: float
    width: float
    depth: float
    full: bool


def q(value: float) -> float:
    """Quantise a coordinate to the emitted precision (no negative zero)."""
    return round(value, DECIMALS) + 0.0


def format_value(value: Any) -> str:
    """Fixed, locale-independent formatting of one declared parameter."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{q(value):.{DECIMALS}f}"
    if isinstance(value, str):
        if not _TOKEN.match(value):
            raise InternalConsistencyError(f"refusing to emit non-token string {value!r}")
        return f'"{value}"'
    raise InternalConsistencyError(f"cannot emit parameter of type {type(value).__name__}")


def render_header(kind: str, key: str, parameters: Sequence[Tuple[str, Any]], segments: int) -> str:
    lines = [f"// gridmk {kind} {key}", f"$fn = {segments};"]
    for name, value in parameters:
        lines.append(f"{name} = {format_value(value)};")
    return "\n".join(lines) + "\n"


def _describe(kind: str, key: str, parameters, assembly, segments: int) -> EmittedDescription:
    if not _TOKEN.match(key):
        raise InternalConsistencyError(f"invalid description key {key!r}")
    params = tuple(parameters)
    text = scad_render(assembly, file_header=render_header(kind, key, params, segments))
    logger.debug("emitted %s %s (%d bytes)", kind, key, len(text))
    return EmittedDescription(kind=kind, key=key, scad_text=text, parameters=params)


# --- shared building blocks --------------------------------------------------

def rounded_rect(width: float, depth: float, height: float, radius: float):
    """Rounded rectangle extruded upward from z = 0, corner at the origin."""
    r = min(radius, min(width, depth) / 2 - 0.01)
    if r <= 0:
        return cube([q(width), q(depth), q(height)])
    # Round only the XY corners: 2D offset + linear_extrude
    base_2d = square([q(width - 2 * r), q(depth - 2 * r)])
    return translate([q(r), q(r), 0])(linear_extrude(height=q(height))(offset(r=q(r))(base_2d)))


def _slab(x: float, y: float, z: float, width: float, depth: float, radius: float):
    return translate([q(x), q(y), q(z)])(rounded_rect(width, depth, SLAB_MM, radius))


def _level_radius(top_radius: float, inset: float, bottom_radius: float) -> float:
    return max(bottom_radius, top_radius - inset)


def tapered_block(
    x: float,
    y: float,
    width: float,
    depth: float,
    levels: Sequence[Tuple[float, float]],
    top_radius: float,
    bottom_radius: float,
    z0: float = 0.0,
):
    """
    Hull over one outline per (z, inset) level.

    Insets shrink the outline on every side; radii follow the inset down to
    ``bottom_radius``. The last level sits just below its z so the hull top
    is at exactly ``z0 + z``.
    """
    outlines = []
    last = len(levels) - 1
    for i, (z, inset) in enumerate(levels):
        z_at = z0 + z - (SLAB_MM if i == last else 0.0)
        outlines.append(
            _slab(
                x + inset,
                y + inset,
                z_at,
                width - 2 * inset,
                depth - 2 * inset,
                _level_radius(top_radius, inset, bottom_radius),
            )
        )
    return hull()(*outlines)


def cell_layout(units_x: float, units_y: float, unit: float) -> List[Cell]:
    """Full cells, then the half-cell column, row and corner, from the grid origin."""
    full_x, half_x = split_units(units_x)
    full_y, half_y = split_units(units_y)
    half = unit / 2
    cells = []
    for gx in range(full_x):
        for gy in range(full_y):
            cells.append(Cell(gx * unit, gy * unit, unit, unit, True))
    if half_x:
        for gy in range(full_y):
            cells.append(Cell(full_x * unit, gy * unit, half, unit, False))
    if half_y:
        for gx in range(full_x):
            cells.append(Cell(gx * unit, full_y * unit, unit, half, False))
    if half_x and half_y:
        cells.append(Cell(full_x * unit, full_y * unit, half, half, False))
    return cells


def _corner_positions(unit: float) -> List[Tuple[float, float]]:
    near, far = HOLE_INSET_MM, unit - HOLE_INSET_MM
    return [(near, near), (near, far), (far, near), (far, far)]


def _countersunk_hole(x: float, y: float, diameter: float, height: float):
    return translate([q(x), q(y), -EPS])(
        union()(
            cylinder(d=q(diameter), h=q(height + 2 * EPS)),
            translate([0, 0, q(height - COUNTERSINK_TOP_OFFSET_MM)])(
                cylinder(d1=q(diameter), d2=q(diameter * COUNTERSINK_SCALE), h=COUNTERSINK_DEPTH_MM)
            ),
        )
    )


# --- box ---------------------------------------------------------------------

def lip_levels(config: BoxConfig) -> Tuple[Tuple[float, float], ...]:
    """(z, inset) levels of the stacking lip cut, bottom-up; empty when there is no lip."""
    if config.lip_style == "none":
        return ()
    if config.lip_style == "perfect_fit":
        # Shaped exactly like the foot so a stacked box seats fully
        profile = compute_foot_profile(config.foot_chamfer_angle, config.foot_chamfer_height)
    else:
        profile = compute_foot_profile(config.lip_chamfer_angle, config.lip_chamfer_height)
    scale = LIP_SCALE[config.lip_style]
    return tuple((z * scale, inset * scale) for z, inset in profile.levels)


def _box_parameters(config: BoxConfig, foot: Profile, box_height: float, lip_height: float):
    return [
        ("width_units", config.width),
        ("depth_units", config.depth),
        ("height_units", config.height),
        ("grid_unit", config.grid_size),
        ("wall_thickness", config.wall_thickness),
        ("floor_thickness", config.floor_thickness),
        ("magnet_enabled", config.magnet_enabled),
        ("magnet_diameter", config.magnet_diameter),
        ("magnet_depth", config.magnet_depth),
        ("screw_enabled", config.screw_enabled),
        ("screw_diameter", config.screw_diameter),
        ("label_enabled", config.label_enabled),
        ("dividers_x", config.dividers_x),
        ("dividers_y", config.dividers_y),
        ("lip_style", config.lip_style),
        ("corner_radius", config.corner_radius),
        ("feet_corner_radius", config.feet_corner_radius),
        ("foot_bottom_corner_radius", config.foot_bottom_corner_radius),
        ("foot_chamfer_angle", config.foot_chamfer_angle),
        ("foot_chamfer_height", config.foot_chamfer_height),
        ("foot_bottom_inset", foot.total_inset),
        ("lip_chamfer_angle", config.lip_chamfer_angle),
        ("lip_chamfer_height", config.lip_chamfer_height),
        ("lip_height", lip_height),
        ("prevent_bottom_overhangs", config.prevent_bottom_overhangs),
        ("box_height", box_height),
    ]


def _box_feet(config: BoxConfig, foot: Profile):
    feet = []
    for cell in cell_layout(config.width, config.depth, config.grid_size):
        foot_solid = tapered_block(
            cell.x + CELL_CLEARANCE_MM,
            cell.y + CELL_CLEARANCE_MM,
            cell.width - 2 * CELL_CLEARANCE_MM,
            cell.depth - 2 * CELL_CLEARANCE_MM,
            foot.levels,
            config.feet_corner_radius,
            config.foot_bottom_corner_radius,
        )
        holes = []
        if cell.full and (config.magnet_enabled or config.screw_enabled):
            for hx, hy in _corner_positions(config.grid_size):
                if config.magnet_enabled:
                    holes.append(
                        translate([q(cell.x + hx), q(cell.y + hy), -EPS])(
                            cylinder(d=q(config.magnet_diameter), h=q(config.magnet_depth + EPS))
                        )
                    )
                if config.screw_enabled:
                    holes.append(
                        translate([q(cell.x + hx), q(cell.y + hy), -EPS])(
                            cylinder(d=q(config.screw_diameter), h=q(foot.total_height_mm + 2 * EPS))
                        )
                    )
        feet.append(difference()(foot_solid, *holes) if holes else foot_solid)
    return union()(*feet)


def _box_walls(config: BoxConfig, wall_height: float, lip: Sequence[Tuple[float, float]]):
    width, depth = config.outer_width_mm, config.outer_depth_mm
    radius = config.corner_radius
    wall = config.wall_thickness
    if config.prevent_bottom_overhangs:
        chamfer = BOTTOM_OVERHANG_CHAMFER_MM
        outer = tapered_block(
            0, 0, width, depth,
            ((0.0, chamfer), (chamfer, 0.0), (wall_height, 0.0)),
            radius, MIN_BOTTOM_RADIUS_MM,
        )
    else:
        outer = rounded_rect(width, depth, wall_height, radius)

    cavity = translate([q(wall), q(wall), q(config.floor_thickness)])(
        rounded_rect(width - 2 * wall, depth - 2 * wall, wall_height - config.floor_thickness + EPS,
                     max(0.0, radius - wall))
    )
    walls = difference()(outer, cavity)
    if lip:
        # The lip thickens the top of the walls; its cut narrows toward the bottom
        lip_height = lip[-1][0]
        lip_base = wall_height - lip_height
        lip_block = translate([0, 0, q(lip_base)])(rounded_rect(width, depth, lip_height, radius))
        cut_levels = tuple(lip) + ((lip_height + EPS, 0.0),)
        lip_cut = tapered_block(0, 0, width, depth, cut_levels, radius, 0.0, z0=lip_base)
        walls = union()(walls, difference()(lip_block, lip_cut))
    return walls


def _box_dividers(config: BoxConfig, floor_z: float, top_z: float):
    wall = config.wall_thickness
    inner_w = config.outer_width_mm - 2 * wall
    inner_d = config.outer_depth_mm - 2 * wall
    height = top_z - floor_z
    parts = []
    for i in range(1, config.dividers_x + 1):
        x = wall + inner_w * i / (config.dividers_x + 1) - DIVIDER_THICKNESS_MM / 2
        parts.append(translate([q(x), q(wall), q(floor_z)])(cube([DIVIDER_THICKNESS_MM, q(inner_d), q(height)])))
    for i in range(1, config.dividers_y + 1):
        y = wall + inner_d * i / (config.dividers_y + 1) - DIVIDER_THICKNESS_MM / 2
        parts.append(translate([q(wall), q(y), q(floor_z)])(cube([q(inner_w), DIVIDER_THICKNESS_MM, q(height)])))
    return parts


def _label_tab(config: BoxConfig, top_z: float):
    """Sloped shelf along the front wall, just under the lip."""
    wall = config.wall_thickness
    inner_w = config.outer_width_mm - 2 * wall
    inner_d = config.outer_depth_mm - 2 * wall
    tab_w = inner_w * LABEL_TAB_WIDTH_FRACTION
    reach = min(LABEL_TAB_REACH_MM, inner_d / 2)
    x = wall + (inner_w - tab_w) / 2
    shelf = translate([q(x), q(wall), q(top_z - LABEL_TAB_THICKNESS_MM)])(
        cube([q(tab_w), q(reach), LABEL_TAB_THICKNESS_MM])
    )
    root = translate([q(x), q(wall), q(top_z - LABEL_TAB_THICKNESS_MM - reach)])(
        cube([q(tab_w), SLAB_MM, SLAB_MM])
    )
    return hull()(shelf, root)


def emit_box(config: BoxConfig) -> EmittedDescription:
    """
    Build the OpenSCAD description of a box.

    Args:
        config: Validated box configuration

    Returns:
        EmittedDescription of kind ``box``

    Raises:
        ConfigError: If the box is too short for its foot, floor and lip
    """
    config.validate()
    foot = compute_foot_profile(config.foot_chamfer_angle, config.foot_chamfer_height)
    lip = lip_levels(config)
    lip_height = lip[-1][0] if lip else 0.0
    wall_height = config.height * HEIGHT_UNIT_MM
    box_height = wall_height + foot.total_height_mm
    if config.floor_thickness + lip_height >= wall_height:
        raise ConfigError(
            f"box height {wall_height}mm leaves no room above the floor and a {lip_height}mm lip"
        )

    walls = _box_walls(config, wall_height, lip)
    interior = []
    top_z = wall_height - lip_height
    if config.dividers_x or config.dividers_y:
        interior.extend(_box_dividers(config, config.floor_thickness, top_z))
    if config.label_enabled:
        interior.append(_label_tab(config, top_z))
    body = union()(walls, *interior) if interior else walls

    assembly = union()(_box_feet(config, foot), translate([0, 0, q(foot.total_height_mm)])(body))
    parameters = _box_parameters(config, foot, box_height, lip_height)
    return _describe("box", "box", parameters, assembly, BOX_SEGMENTS)


# --- baseplate ---------------------------------------------------------------

def _socket(cell: Cell, socket: Profile, remove_bottom_taper: bool, bottom_radius: float):
    height = socket.total_height_mm
    levels = ((0.0, 0.0), (height, 0.0)) if remove_bottom_taper else socket.levels
    # through the bottom face and past the top face
    cut_levels = ((-EPS, levels[0][1]),) + tuple(levels) + ((height + EPS, 0.0),)
    return tapered_block(
        cell.x + CELL_CLEARANCE_MM,
        cell.y + CELL_CLEARANCE_MM,
        cell.width - 2 * CELL_CLEARANCE_MM,
        cell.depth - 2 * CELL_CLEARANCE_MM,
        cut_levels,
        SOCKET_CORNER_RADIUS_MM,
        bottom_radius,
    )


def _style_holes(config: BaseplateConfig, cell: Cell, plate_height: float) -> list:
    """Holes for the plate style; only full cells get them."""
    if not cell.full:
        return []
    unit = config.grid_size
    holes = []
    if config.style == "magnet":
        if config.magnet_z_offset > 0:
            magnet_z = config.magnet_z_offset
        elif config.magnet_top_cover > 0:
            magnet_z = plate_height - config.magnet_depth - config.magnet_top_cover
        else:
            magnet_z = plate_height - config.magnet_depth
        for hx, hy in _corner_positions(unit):
            holes.append(
                translate([q(cell.x + hx), q(cell.y + hy), q(magnet_z)])(
                    cylinder(d=q(config.magnet_diameter), h=q(config.magnet_depth + EPS))
                )
            )
            if config.magnet_z_offset > 0:
                # push-out hole under a raised magnet
                holes.append(
                    translate([q(cell.x + hx), q(cell.y + hy), -EPS])(
                        cylinder(d=q(config.magnet_diameter * 0.6), h=q(config.magnet_z_offset + EPS))
                    )
                )
    if config.style == "screw":
        for hx, hy in _corner_positions(unit):
            holes.append(_countersunk_hole(cell.x + hx, cell.y + hy, config.screw_diameter, plate_height))
    if config.center_screw:
        holes.append(_countersunk_hole(cell.x + unit / 2, cell.y + unit / 2, config.screw_diameter, plate_height))
    if config.weight_cavity or config.style == "weighted":
        edge = (unit - WEIGHT_CAVITY_SIZE_MM) / 2
        holes.append(
            translate([q(cell.x + edge), q(cell.y + edge), -EPS])(
                cube([WEIGHT_CAVITY_SIZE_MM, WEIGHT_CAVITY_SIZE_MM, q(WEIGHT_CAVITY_DEPTH_MM + EPS)])
            )
        )
    return holes


def _plate(
    config: BaseplateConfig,
    socket: Profile,
    units_x: float,
    units_y: float,
    outer_width: float,
    outer_depth: float,
    grid_x: float,
    grid_y: float,
):
    """Plate body with sockets and style holes; returns (body, cuts)."""
    height = socket.total_height_mm
    body = rounded_rect(outer_width, outer_depth, height, config.corner_radius)
    bottom_radius = max(config.socket_bottom_corner_radius, SOCKET_CORNER_RADIUS_MM - socket.total_inset)
    cuts = []
    for cell in cell_layout(units_x, units_y, config.grid_size):
        placed = Cell(grid_x + cell.x, grid_y + cell.y, cell.width, cell.depth, cell.full)
        cuts.append(_socket(placed, socket, config.remove_bottom_taper, bottom_radius))
        cuts.extend(_style_holes(config, placed, height))
    return body, cuts


def _socket_profile(config: BaseplateConfig, box: Optional[BoxConfig]) -> Profile:
    angle, height = resolve_socket_params(config, box)
    return compute_socket_profile(angle, height)


def _baseplate_parameters(config: BaseplateConfig, socket: Profile) -> list:
    return [
        ("grid_unit", config.grid_size),
        ("style", config.style),
        ("magnet_diameter", config.magnet_diameter),
        ("magnet_depth", config.magnet_depth),
        ("magnet_z_offset", config.magnet_z_offset),
        ("magnet_top_cover", config.magnet_top_cover),
        ("screw_diameter", config.screw_diameter),
        ("center_screw", config.center_screw),
        ("weight_cavity", config.weight_cavity),
        ("remove_bottom_taper", config.remove_bottom_taper),
        ("corner_radius", config.corner_radius),
        ("socket_chamfer_angle", socket.angle_deg),
        ("socket_chamfer_height", socket.total_height_mm),
        ("socket_bottom_inset", socket.total_inset),
        ("socket_bottom_corner_radius", config.socket_bottom_corner_radius),
        ("plate_height", socket.total_height_mm),
    ]


def emit_baseplate(
    config: BaseplateConfig, grid: GridCalculation, box: Optional[BoxConfig] = None
) -> EmittedDescription:
    """
    Build the OpenSCAD description of a whole (unsplit) baseplate.

    Args:
        config: Validated baseplate configuration
        grid: Grid calculation for the plate
        box: Box whose foot the sockets copy when ``sync_socket_with_foot`` is set

    Returns:
        EmittedDescription of kind ``baseplate``
    """
    config.validate()
    socket = _socket_profile(config, box)
    # a trailing half cell needs the same closing wall a split segment gets
    far_x, _ = apply_closing_wall(grid.grid_units_x, grid.padding_far_x)
    far_y, _ = apply_closing_wall(grid.grid_units_y, grid.padding_far_y)
    width = grid.grid_coverage_mm_x + grid.padding_near_x + far_x
    depth = grid.grid_coverage_mm_y + grid.padding_near_y + far_y
    body, cuts = _plate(
        config,
        socket,
        grid.grid_units_x,
        grid.grid_units_y,
        width,
        depth,
        grid.padding_near_x,
        grid.padding_near_y,
    )
    parameters = [
        ("width_units", grid.grid_units_x),
        ("depth_units", grid.grid_units_y),
        ("use_fill_mode", grid.fill_mode),
        ("padding_near_x", grid.padding_near_x),
        ("padding_far_x", far_x),
        ("padding_near_y", grid.padding_near_y),
        ("padding_far_y", far_y),
        ("plate_width", width),
        ("plate_depth", depth),
    ] + _baseplate_parameters(config, socket)
    assembly = difference()(body, *cuts)
    return _describe("baseplate", "baseplate", parameters, assembly, config.corner_segments)


def _edge_teeth(
    segment: SegmentInfo,
    side: Side,
    edge: EdgeType,
    outline: Sequence[Tuple[float, float]],
    height: float,
) -> list:
    """Teeth (or cavities) along one segment edge, pointing from the male side to the female side."""
    if edge is EdgeType.NONE:
        return []
    dx, dy = _OUTWARD[side]
    if edge is EdgeType.FEMALE:
        dx, dy = -dx, -dy
    angle = _TOOTH_ROTATION[(dx, dy)]
    z0, extrude = (0.0, height) if edge is EdgeType.MALE else (-EPS, height + 2 * EPS)
    shape = linear_extrude(height=q(extrude))(polygon([[q(x), q(y)] for x, y in outline]))

    if side in (Side.LEFT, Side.RIGHT):
        along = tooth_positions(segment.grid_units_y, segment.unit_size_mm)
        origin = segment.padding_front
        edge_at = 0.0 if side is Side.LEFT else segment.outer_width_mm
        points = [(edge_at, origin + p) for p in along]
    else:
        along = tooth_positions(segment.grid_units_x, segment.unit_size_mm)
        origin = segment.padding_left
        edge_at = 0.0 if side is Side.FRONT else segment.outer_depth_mm
        points = [(origin + p, edge_at) for p in along]
    return [translate([q(x), q(y), q(z0)])(rotate([0, 0, angle])(shape)) for x, y in points]


def emit_segment(
    config: BaseplateConfig,
    split: SplitResult,
    segment: SegmentInfo,
    edges: SegmentEdges,
    box: Optional[BoxConfig] = None,
) -> EmittedDescription:
    """
    Build the OpenSCAD description of one baseplate segment.

    Male teeth are added to the plate and female cavities cut from it at the
    edges resolved in ``edges``.

    Args:
        config: Validated baseplate configuration
        split: The split the segment belongs to
        segment: Segment to emit
        edges: Resolved edge roles for this segment
        box: Box whose foot the sockets copy when ``sync_socket_with_foot`` is set

    Returns:
        EmittedDescription of kind ``segment`` keyed ``x_y``
    """
    if not split.contains(segment.segment_x, segment.segment_y):
        raise InternalConsistencyError(f"segment {segment.key} is not part of the split")
    config.validate()
    socket = _socket_profile(config, box)
    height = socket.total_height_mm
    body, cuts = _plate(
        config,
        socket,
        segment.grid_units_x,
        segment.grid_units_y,
        segment.outer_width_mm,
        segment.outer_depth_mm,
        segment.padding_left,
        segment.padding_front,
    )

    params = config.pattern_params
    male = build_tooth_profile(
        EdgeType.MALE, config.edge_pattern, config.tooth_width, config.tooth_depth,
        config.connector_tolerance, params,
    )
    female = build_tooth_profile(
        EdgeType.FEMALE, config.edge_pattern, config.tooth_width, config.tooth_depth,
        config.connector_tolerance, params,
    )
    teeth, cavities = [], []
    for side in (Side.LEFT, Side.RIGHT, Side.FRONT, Side.BACK):
        edge = edges.edge(side)
        if edge is EdgeType.MALE:
            teeth.extend(_edge_teeth(segment, side, edge, male, height))
        elif edge is EdgeType.FEMALE:
            cavities.extend(_edge_teeth(segment, side, edge, female, height))

    solid = union()(body, *teeth) if teeth else body
    assembly = difference()(solid, *cuts, *cavities)

    parameters = [
        ("segment_x", segment.segment_x),
        ("segment_y", segment.segment_y),
        ("segments_x", split.segments_x),
        ("segments_y", split.segments_y),
        ("width_units", segment.grid_units_x),
        ("depth_units", segment.grid_units_y),
        ("padding_left", segment.padding_left),
        ("padding_right", segment.padding_right),
        ("padding_front", segment.padding_front),
        ("padding_back", segment.padding_back),
        ("plate_width", segment.outer_width_mm),
        ("plate_depth", segment.outer_depth_mm),
        ("edge_left", edges.left),
        ("edge_right", edges.right),
        ("edge_front", edges.front),
        ("edge_back", edges.back),
        ("edge_pattern", config.edge_pattern),
        ("tooth_width", config.tooth_width),
        ("tooth_depth", config.tooth_depth),
        ("connector_tolerance", config.connector_tolerance),
        ("concave_depth", config.concave_depth),
        ("wineglass_aspect_ratio", config.wineglass_aspect_ratio),
    ] + _baseplate_parameters(config, socket)
    return _describe("segment", segment.key, parameters, assembly, config.corner_segments)


def render_to_file(description: EmittedDescription, filepath: str) -> None:
    """Write an emitted description to an OpenSCAD .scad file."""
    with open(filepath, "w", encoding="utf-8", newline="\n") as f:
        f.write(description.scad_text)
