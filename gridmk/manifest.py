"""Assembly manifest for split baseplates."""

import json
from typing import Any, Dict, Mapping, Optional, Tuple

from .connectors import SegmentEdges
from .errors import InternalConsistencyError
from .split import SplitResult


def segment_artifact_name(x: int, y: int) -> str:
    """Artifact base name for the segment at grid position (x, y)."""
    return f"baseplate_segment_{x}_{y}"


def build_manifest(
    split: SplitResult,
    edge_types: Mapping[Tuple[int, int], SegmentEdges],
    name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Describe the segment layout and connectors of a split plate.

    Segments are listed row-major (all of row y = 0 first), matching the
    order descriptions and renders are returned in.

    Args:
        split: The split plate
        edge_types: Resolved edge roles keyed by (x, y), as from edge_plan
        name: Optional plate name, carried as metadata

    Returns:
        JSON-serialisable dict with camelCase keys
    """
    per_segment = []
    for segment in split.iter_segments():
        coords = (segment.segment_x, segment.segment_y)
        if coords not in edge_types:
            raise InternalConsistencyError(f"no edge plan for segment {coords}")
        per_segment.append(
            {
                "x": segment.segment_x,
                "y": segment.segment_y,
                "gridUnitsX": segment.grid_units_x,
                "gridUnitsY": segment.grid_units_y,
                "connectors": edge_types[coords].as_dict(),
                "artifact": segment_artifact_name(*coords),
            }
        )
    manifest: Dict[str, Any] = {
        "segmentsX": split.segments_x,
        "segmentsY": split.segments_y,
        "totalSegments": split.total_segments,
        "perSegment": per_segment,
    }
    if name is not None:
        manifest["name"] = name
    return manifest


def write_manifest(manifest: Mapping[str, Any], filepath: str) -> None:
    """Write a manifest as indented JSON."""
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=False)
        f.write("\n")
