"""Command-line interface for gridmk."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import (
    BASEPLATE_STYLES,
    LIP_STYLES,
    RenderSettings,
    build_baseplate_config,
    build_box_config,
    parse_dimensions,
    parse_footprint,
)
from .connectors import EDGE_PATTERNS
from .errors import ConfigError
from .geometry import render_to_file
from .manifest import write_manifest
from .pipeline import GenerationResult, generate_baseplate, generate_box
from .render import OpenSCADRenderer

logger = logging.getLogger(__name__)


def parse_set_args(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated 'key=value' options into a dict (values stay strings)."""
    overrides: Dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ConfigError(f"Expected key=value, got: {pair}")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigError(f"Expected key=value, got: {pair}")
        overrides[key] = value.strip()
    return overrides


def load_record(path: Optional[str]) -> Dict[str, Any]:
    """Load a JSON config record, or an empty one when no path is given."""
    if not path:
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            record = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e.strerror}") from None
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from None
    if not isinstance(record, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return record


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="JSON config record (camelCase or snake_case; older schemas are migrated)",
    )
    parser.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Override one config field; may be repeated",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="DIR",
        default=".",
        help="Output directory for .scad files, manifest and meshes (default: .)",
    )
    parser.add_argument(
        "--render",
        action="store_true",
        help="Also run OpenSCAD to produce meshes",
    )
    parser.add_argument(
        "--openscad",
        metavar="BIN",
        help="OpenSCAD executable (default: $OPENSCAD_PATH or openscad)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="S",
        help="Per-render timeout in seconds (default: $GRIDMK_RENDER_TIMEOUT or 120)",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        metavar="N",
        help="Concurrent renders (default: $GRIDMK_RENDER_JOBS or 2)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate grid storage boxes and baseplates as OpenSCAD models for 3D printing"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    box = sub.add_parser("box", help="Generate a storage box")
    _add_common_arguments(box)
    box.add_argument(
        "--size",
        metavar="WxDxH",
        help="Box size in grid units, height in 7mm units (e.g. 2x1.5x6)",
    )
    box.add_argument(
        "--lip",
        choices=LIP_STYLES,
        help="Stacking lip style",
    )
    box.add_argument("--magnets", action="store_true", help="Magnet holes in the feet")
    box.add_argument("--screws", action="store_true", help="Screw holes in the feet")
    box.add_argument("--label", action="store_true", help="Add a label tab")
    box.add_argument(
        "--dividers",
        metavar="XxY",
        help="Number of dividers across and front to back (e.g. 2x0)",
    )

    plate = sub.add_parser("baseplate", help="Generate a baseplate")
    _add_common_arguments(plate)
    size = plate.add_mutually_exclusive_group()
    size.add_argument(
        "--size",
        metavar="WxD",
        help="Plate size in grid units (e.g. 5x4.5)",
    )
    size.add_argument(
        "--target",
        metavar="WxD",
        help="Fill an area in mm (e.g. 200x180); leftover space becomes padding",
    )
    plate.add_argument(
        "--bed",
        metavar="WxD",
        help="Split into segments that fit this printer bed in mm (e.g. 220x220)",
    )
    plate.add_argument(
        "--pattern",
        choices=EDGE_PATTERNS,
        help="Interlocking edge pattern for split plates",
    )
    plate.add_argument(
        "--style",
        choices=BASEPLATE_STYLES,
        help="Plate style",
    )
    plate.add_argument(
        "--tolerance",
        type=float,
        metavar="MM",
        help="Connector fit tolerance in mm (default: 0.3)",
    )
    plate.add_argument(
        "--box-config",
        metavar="FILE",
        help="Box config whose foot the sockets are matched to",
    )
    return parser


def _box_overrides(args) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.size:
        width, depth, height = parse_dimensions(args.size)
        overrides.update(width=width, depth=depth)
        if height is not None:
            overrides["height"] = height
    if args.lip:
        overrides["lip_style"] = args.lip
    if args.magnets:
        overrides["magnet_enabled"] = True
    if args.screws:
        overrides["screw_enabled"] = True
    if args.label:
        overrides["label_enabled"] = True
    if args.dividers:
        parts = args.dividers.lower().split("x")
        if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
            raise ConfigError(f"Expected format XxY with whole numbers, got: {args.dividers}")
        overrides.update(dividers_x=int(parts[0]), dividers_y=int(parts[1]))
    return overrides


def _baseplate_overrides(args) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.size:
        width, depth = parse_footprint(args.size)
        overrides.update(sizing_mode="grid_units", width=width, depth=depth)
    if args.target:
        width, depth = parse_footprint(args.target)
        overrides.update(sizing_mode="fill_area_mm", target_width_mm=width, target_depth_mm=depth)
    if args.bed:
        width, depth = parse_footprint(args.bed)
        overrides.update(split_enabled=True, printer_bed_width=width, printer_bed_depth=depth)
    if args.pattern:
        overrides["edge_pattern"] = args.pattern
    if args.style:
        overrides["style"] = args.style
    if args.tolerance is not None:
        overrides["connector_tolerance"] = args.tolerance
    return overrides


def _render_settings(args) -> RenderSettings:
    env = RenderSettings.from_env()
    settings = RenderSettings(
        openscad_binary=args.openscad or env.openscad_binary,
        timeout_s=args.timeout if args.timeout is not None else env.timeout_s,
        max_workers=args.jobs if args.jobs is not None else env.max_workers,
    )
    settings.validate()
    return settings


def _generate(args) -> GenerationResult:
    record = load_record(args.config)
    if args.command == "box":
        overrides = _box_overrides(args)
        overrides.update(parse_set_args(args.set))
        return generate_box(build_box_config(record, **overrides))
    overrides = _baseplate_overrides(args)
    overrides.update(parse_set_args(args.set))
    config = build_baseplate_config(record, **overrides)
    box = build_box_config(load_record(args.box_config)) if args.box_config else None
    return generate_baseplate(config, box=box)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = _render_settings(args)
        result = _generate(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(1)

    out_dir = Path(args.output)
    out_dir.mkdir(parents=True, exist_ok=True)
    for description in result.descriptions:
        scad_path = out_dir / f"{description.artifact_name}.scad"
        render_to_file(description, str(scad_path))
        print(f"Wrote {scad_path}")
    if result.manifest is not None:
        manifest_path = out_dir / "manifest.json"
        write_manifest(result.manifest, str(manifest_path))
        print(f"Wrote {manifest_path} ({result.manifest['totalSegments']} segments)")

    if not args.render:
        return
    renderer = OpenSCADRenderer.from_settings(settings)
    failed = 0
    for outcome in renderer.render_many(result.descriptions, out_dir):
        if outcome.ok:
            print(f"Wrote {outcome.mesh_path}")
            continue
        failed += 1
        print(f"Render error: {outcome.error}", file=sys.stderr)
        if outcome.error.stderr:
            logger.debug("openscad stderr for %s:\n%s", outcome.artifact_name, outcome.error.stderr)
    if failed:
        sys.exit(2)


if __name__ == "__main__":
    main()
