"""Configuration defaults, migration and validation for boxes and baseplates."""

import logging
import os
import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from .connectors import BULB_PATTERNS, EDGE_PATTERNS, PUZZLE_BULB_RATIO, PatternParams, SegmentEdgeOverride
from .errors import ConfigError
from .grid import ALIGNMENTS
from .profile import (
    DEFAULT_FOOT_CHAMFER_ANGLE,
    DEFAULT_FOOT_CHAMFER_HEIGHT,
    DEFAULT_LIP_CHAMFER_HEIGHT,
    check_chamfer,
)

logger = logging.getLogger(__name__)

CONFIG_SCHEMA_VERSION = 3

LIP_STYLES = ("perfect_fit", "standard", "reduced", "minimum", "none")
SIZING_MODES = ("grid_units", "fill_area_mm")
BASEPLATE_STYLES = ("default", "magnet", "weighted", "screw")
WINEGLASS_ASPECT_RANGE = (0.5, 2.0)


def _check_half_units(name: str, value: float) -> None:
    if value <= 0 or value * 2 != int(value * 2):
        raise ValueError(f"{name} must be a positive multiple of 0.5, got: {value}")


def _check_non_negative(config, *names: str) -> None:
    for name in names:
        if getattr(config, name) < 0:
            raise ValueError(f"{name} must be non-negative")


def _check_positive(config, *names: str) -> None:
    for name in names:
        if getattr(config, name) <= 0:
            raise ValueError(f"{name} must be positive")


@dataclass(frozen=True)
class BoxConfig:
    """Configuration for a storage box (bin)."""

    width: float = 2.0  # grid units
    depth: float = 2.0
    height: float = 3.0  # 7mm height units
    wall_thickness: float = 0.95
    floor_thickness: float = 0.7
    magnet_enabled: bool = False
    magnet_diameter: float = 6.5
    magnet_depth: float = 2.4
    screw_enabled: bool = False
    screw_diameter: float = 3.0
    label_enabled: bool = False
    label_text: Optional[str] = None  # metadata only, never emitted
    dividers_x: int = 0
    dividers_y: int = 0
    lip_style: str = "perfect_fit"
    corner_radius: float = 3.75
    feet_corner_radius: float = 3.75
    foot_bottom_corner_radius: float = 0.5
    grid_size: float = 42.0
    foot_chamfer_angle: float = DEFAULT_FOOT_CHAMFER_ANGLE
    foot_chamfer_height: float = DEFAULT_FOOT_CHAMFER_HEIGHT
    lip_chamfer_angle: float = 45.0
    lip_chamfer_height: float = DEFAULT_LIP_CHAMFER_HEIGHT
    prevent_bottom_overhangs: bool = True

    def validate(self) -> None:
        """Validate configuration values."""
        try:
            _check_half_units("width", self.width)
            _check_half_units("depth", self.depth)
            _check_half_units("height", self.height)
            _check_positive(self, "wall_thickness", "grid_size")
            _check_non_negative(
                self,
                "floor_thickness",
                "corner_radius",
                "feet_corner_radius",
                "foot_bottom_corner_radius",
                "dividers_x",
                "dividers_y",
            )
            if self.magnet_enabled:
                _check_positive(self, "magnet_diameter", "magnet_depth")
            if self.screw_enabled:
                _check_positive(self, "screw_diameter")
            if self.lip_style not in LIP_STYLES:
                raise ValueError(f"lip_style must be one of {', '.join(LIP_STYLES)}")
            if self.corner_radius * 2 >= self.grid_size or self.feet_corner_radius * 2 >= self.grid_size:
                raise ValueError("corner radii must be smaller than half the grid size")
            if self.wall_thickness * 2 >= self.width * self.grid_size:
                raise ValueError("wall_thickness too large for the box width")
        except ValueError as e:
            raise ConfigError(str(e)) from None
        check_chamfer(self.foot_chamfer_angle, self.foot_chamfer_height, "foot chamfer")
        check_chamfer(self.lip_chamfer_angle, self.lip_chamfer_height, "lip chamfer")

    @property
    def outer_width_mm(self) -> float:
        return self.width * self.grid_size

    @property
    def outer_depth_mm(self) -> float:
        return self.depth * self.grid_size


@dataclass(frozen=True)
class BaseplateConfig:
    """Configuration for a baseplate, optionally split into printable segments."""

    sizing_mode: str = "grid_units"
    width: float = 3.0  # grid units (grid_units mode)
    depth: float = 3.0
    target_width_mm: float = 200.0  # fill_area_mm mode
    target_depth_mm: float = 200.0
    allow_half_cells_x: bool = True
    allow_half_cells_y: bool = True
    padding_alignment: str = "center"
    style: str = "default"
    magnet_diameter: float = 6.5
    magnet_depth: float = 2.4
    magnet_z_offset: float = 0.0
    magnet_top_cover: float = 0.0
    screw_diameter: float = 3.0
    center_screw: bool = False
    weight_cavity: bool = False
    remove_bottom_taper: bool = False
    corner_radius: float = 3.75
    corner_segments: int = 32
    grid_size: float = 42.0
    socket_chamfer_angle: float = DEFAULT_FOOT_CHAMFER_ANGLE
    socket_chamfer_height: float = DEFAULT_FOOT_CHAMFER_HEIGHT
    socket_bottom_corner_radius: float = 0.5
    sync_socket_with_foot: bool = True
    split_enabled: bool = False
    printer_bed_width: float = 220.0
    printer_bed_depth: float = 220.0
    connector_enabled: bool = True
    connector_tolerance: float = 0.3
    edge_pattern: str = "wineglass"
    tooth_width: float = 6.0
    tooth_depth: float = 6.0
    concave_depth: float = 50.0  # percent
    wineglass_aspect_ratio: float = 1.0
    edge_overrides: Tuple[SegmentEdgeOverride, ...] = ()
    name: Optional[str] = None  # metadata only, never emitted

    def validate(self) -> None:
        """Validate configuration values."""
        try:
            if self.sizing_mode not in SIZING_MODES:
                raise ValueError(f"sizing_mode must be one of {', '.join(SIZING_MODES)}")
            if self.sizing_mode == "grid_units":
                _check_half_units("width", self.width)
                _check_half_units("depth", self.depth)
            else:
                _check_positive(self, "target_width_mm", "target_depth_mm")
            if self.padding_alignment not in ALIGNMENTS:
                raise ValueError(f"padding_alignment must be one of {', '.join(ALIGNMENTS)}")
            if self.style not in BASEPLATE_STYLES:
                raise ValueError(f"style must be one of {', '.join(BASEPLATE_STYLES)}")
            _check_positive(
                self,
                "grid_size",
                "magnet_diameter",
                "magnet_depth",
                "screw_diameter",
                "printer_bed_width",
                "printer_bed_depth",
                "tooth_width",
                "tooth_depth",
            )
            _check_non_negative(
                self,
                "magnet_z_offset",
                "magnet_top_cover",
                "corner_radius",
                "socket_bottom_corner_radius",
                "connector_tolerance",
            )
            if self.corner_segments < 3:
                raise ValueError("corner_segments must be at least 3")
            if self.corner_radius * 2 >= self.grid_size:
                raise ValueError("corner_radius must be smaller than half the grid size")
            if self.edge_pattern not in EDGE_PATTERNS:
                raise ValueError(f"edge_pattern must be one of {', '.join(EDGE_PATTERNS)}")
            if not (0 <= self.concave_depth <= 100):
                raise ValueError("concave_depth must be between 0 and 100")
            low, high = WINEGLASS_ASPECT_RANGE
            if not (low <= self.wineglass_aspect_ratio <= high):
                raise ValueError(f"wineglass_aspect_ratio must be between {low} and {high}")
            if self.tooth_width + 2 * self.connector_tolerance >= self.grid_size:
                raise ValueError("tooth_width plus tolerance must be smaller than the grid size")
            if self.edge_pattern in BULB_PATTERNS and self.tooth_depth - self.tooth_width * PUZZLE_BULB_RATIO <= 0:
                raise ValueError(
                    f"tooth_depth must exceed {PUZZLE_BULB_RATIO} x tooth_width for the {self.edge_pattern} pattern"
                )
        except ValueError as e:
            raise ConfigError(str(e)) from None
        if not self.sync_socket_with_foot:
            check_chamfer(self.socket_chamfer_angle, self.socket_chamfer_height, "socket chamfer")
        for override in self.edge_overrides:
            if not isinstance(override, SegmentEdgeOverride):
                raise ConfigError(f"edge_overrides entries must be SegmentEdgeOverride, got: {override!r}")

    @property
    def fill_mode(self) -> bool:
        return self.sizing_mode == "fill_area_mm"

    @property
    def pattern_params(self) -> PatternParams:
        return PatternParams(
            concave_depth=self.concave_depth,
            wineglass_aspect_ratio=self.wineglass_aspect_ratio,
        )


@dataclass(frozen=True)
class RenderSettings:
    """Settings for invoking the external OpenSCAD renderer."""

    openscad_binary: str = "openscad"
    timeout_s: float = 120.0
    max_workers: int = 2
    output_format: str = "stl"

    def validate(self) -> None:
        if not self.openscad_binary:
            raise ConfigError("openscad_binary must not be empty")
        if self.timeout_s <= 0:
            raise ConfigError("render timeout must be positive")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if self.output_format not in ("stl", "3mf", "off", "amf"):
            raise ConfigError(f"unsupported mesh format: {self.output_format}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RenderSettings":
        """Read OPENSCAD_PATH, GRIDMK_RENDER_TIMEOUT and GRIDMK_RENDER_JOBS."""
        env = os.environ if environ is None else environ
        try:
            settings = cls(
                openscad_binary=env.get("OPENSCAD_PATH") or cls.openscad_binary,
                timeout_s=float(env.get("GRIDMK_RENDER_TIMEOUT") or cls.timeout_s),
                max_workers=int(env.get("GRIDMK_RENDER_JOBS") or cls.max_workers),
            )
        except ValueError as e:
            raise ConfigError(f"invalid render setting in environment: {e}") from None
        settings.validate()
        return settings


# --- migration ---------------------------------------------------------------

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# v1 split each taper stack into three heights; these are the v1 defaults
_V1_FOOT_TAPERS = {
    "foot_lower_taper_height": 0.8,
    "foot_riser_height": 1.8,
    "foot_upper_taper_height": 2.15,
}
_V1_SOCKET_TAPERS = {
    "socket_lower_taper_height": 0.7,
    "socket_riser_height": 1.8,
    "socket_upper_taper_height": 2.15,
}
_V2_BOX_ONLY = ("inner_wall_floor_radius", "inner_edge_bevel_segments")

# Fields of the original records this package does not model
_UNSUPPORTED_BOX_FIELDS = (
    "magnet_easy_release",
    "finger_slide",
    "finger_slide_style",
    "finger_slide_radius",
    "finger_slide_position",
    "label_position",
    "label_width",
    "flat_base",
    "efficient_floor",
    "tapered_corner",
    "tapered_corner_size",
    "wall_pattern",
    "wall_pattern_spacing",
    "inner_edge_bevel",
    "bottom_overhang_chamfer_angle",
)
_UNSUPPORTED_BASEPLATE_FIELDS = (
    "plate_style",
    "connector_roof_intensity",
    "connector_roof_depth",
)


def snake_case(key: str) -> str:
    """Normalise a camelCase record key (``gridUnitsX`` -> ``grid_units_x``)."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def detect_schema_version(record: Mapping[str, Any]) -> int:
    """Schema version of a snake_case record, explicit or inferred from its fields."""
    if "schema_version" in record:
        try:
            version = int(record["schema_version"])
        except (TypeError, ValueError):
            raise ConfigError(f"schema_version must be an integer, got: {record['schema_version']!r}") from None
        if not 1 <= version <= CONFIG_SCHEMA_VERSION:
            raise ConfigError(f"unsupported schema_version: {version}")
        return version
    if any(k in record for k in _V1_FOOT_TAPERS) or any(k in record for k in _V1_SOCKET_TAPERS):
        return 1
    if any(k in record for k in _V2_BOX_ONLY):
        return 2
    return CONFIG_SCHEMA_VERSION


def _collapse_tapers(record: Dict[str, Any], tapers: Mapping[str, float], prefix: str) -> None:
    present = [k for k in tapers if k in record]
    values = {k: float(record.pop(k, default)) for k, default in tapers.items()}
    if not present:
        return
    record.setdefault(f"{prefix}_chamfer_height", round(sum(values.values()), 6))
    record.setdefault(f"{prefix}_chamfer_angle", 45.0)  # v1 tapers were always 45 degrees


def _drop(record: Dict[str, Any], names, reason: str) -> None:
    for name in names:
        if name in record:
            logger.debug("dropping %s=%r (%s)", name, record.pop(name), reason)


def _normalise(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if record is None:
        return {}
    if not isinstance(record, Mapping):
        raise ConfigError(f"config record must be a mapping, got: {type(record).__name__}")
    return {snake_case(str(k)): v for k, v in record.items()}


def _reject_unknown(record: Mapping[str, Any], cls) -> None:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(record) - known)
    if unknown:
        raise ConfigError(f"unknown {cls.__name__} fields: {', '.join(unknown)}")


def migrate_box_record(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Bring a partial, possibly old-shaped box record up to the current schema.

    Raises:
        ConfigError: If fields remain that the current schema does not know
    """
    data = _normalise(record)
    version = detect_schema_version(data)
    data.pop("schema_version", None)
    if version < 2:
        _collapse_tapers(data, _V1_FOOT_TAPERS, "foot")
        _drop(data, ("foot_bottom_diameter",), "removed in schema 2")
    if version < 3:
        _drop(data, _V2_BOX_ONLY, "removed in schema 3")
    _drop(data, _UNSUPPORTED_BOX_FIELDS, "not supported")
    _reject_unknown(data, BoxConfig)
    return data


def migrate_baseplate_record(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Bring a partial, possibly old-shaped baseplate record up to the current schema."""
    data = _normalise(record)
    version = detect_schema_version(data)
    data.pop("schema_version", None)
    if version < 2:
        _collapse_tapers(data, _V1_SOCKET_TAPERS, "socket")
        if "socket_chamfer_height" in data:
            # v1 plates carried their own socket stack
            data.setdefault("sync_socket_with_foot", False)
    _drop(data, _UNSUPPORTED_BASEPLATE_FIELDS, "not supported")
    if "edge_overrides" in data and data["edge_overrides"] is not None:
        data["edge_overrides"] = [
            {snake_case(str(k)): v for k, v in o.items()} if isinstance(o, Mapping) else o
            for o in data["edge_overrides"]
        ]
    _reject_unknown(data, BaseplateConfig)
    return data


# --- builders ----------------------------------------------------------------

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _coerce(name: str, value: Any, default: Any) -> Any:
    try:
        if name == "edge_overrides":
            if value is None:
                return ()
            return tuple(
                o if isinstance(o, SegmentEdgeOverride) else SegmentEdgeOverride.from_record(o)
                for o in value
            )
        if default is None:
            return None if value is None else str(value)
        if isinstance(default, bool):
            if isinstance(value, str):
                if value.lower() in _TRUE:
                    return True
                if value.lower() in _FALSE:
                    return False
                raise ValueError(f"not a boolean: {value!r}")
            return bool(value)
        if isinstance(default, int):
            number = float(value)
            if not number.is_integer():
                raise ValueError(f"not an integer: {value!r}")
            return int(number)
        if isinstance(default, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name}: {e}") from None


def _build(cls, migrated: Mapping[str, Any]):
    defaults = {f.name: f.default for f in fields(cls)}
    merged = dict(defaults)
    merged.update(migrated)
    config = cls(**{name: _coerce(name, value, defaults[name]) for name, value in merged.items()})
    config.validate()
    return config


def build_box_config(record: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BoxConfig:
    """
    Build a validated BoxConfig from defaults, a stored record and overrides.

    Args:
        record: Partial record, possibly camelCase and from an older schema
        **overrides: Field values applied on top of the record

    Raises:
        ConfigError: On unknown fields, uncoercible values or failed validation
    """
    migrated = migrate_box_record(record)
    migrated.update(migrate_box_record(overrides))
    config = _build(BoxConfig, migrated)
    logger.debug("box config: %s", config)
    return config


def build_baseplate_config(record: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BaseplateConfig:
    """Build a validated BaseplateConfig; see build_box_config."""
    migrated = migrate_baseplate_record(record)
    migrated.update(migrate_baseplate_record(overrides))
    config = _build(BaseplateConfig, migrated)
    logger.debug("baseplate config: %s", config)
    return config


# --- string parsing (CLI) ----------------------------------------------------

def parse_dimensions(s: str) -> Tuple[float, float, Optional[float]]:
    """Parse 'WxDxH' or 'WxD' (height optional) string to (width, depth, height)."""
    parts = s.lower().replace(" ", "").split("x")
    if len(parts) < 2 or len(parts) > 3:
        raise ConfigError(f"Expected format WxDxH or WxD, got: {s}")
    try:
        dims = [float(p) for p in parts]
    except ValueError:
        raise ConfigError(f"Dimensions must be numbers, got: {s}") from None
    if any(d <= 0 for d in dims):
        raise ConfigError(f"Dimensions must be positive, got: {s}")
    if len(dims) == 2:
        return (dims[0], dims[1], None)
    return (dims[0], dims[1], dims[2])


def parse_footprint(s: str) -> Tuple[float, float]:
    """Parse 'WxD' string to (width, depth)."""
    width, depth, height = parse_dimensions(s)
    if height is not None:
        raise ConfigError(f"Expected format WxD, got: {s}")
    return (width, depth)
