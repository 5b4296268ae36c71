import json

import pytest

from gridmk.connectors import EdgeType, SegmentEdgeOverride, edge_plan
from gridmk.errors import InternalConsistencyError
from gridmk.manifest import build_manifest, segment_artifact_name, write_manifest
from gridmk.split import split_for_bed


@pytest.fixture
def split():
    return split_for_bed(6.5, 7, 220, 220, 42, True)


def test_manifest_layout(split):
    manifest = build_manifest(split, edge_plan(split))
    assert manifest["segmentsX"] == 2
    assert manifest["segmentsY"] == 2
    assert manifest["totalSegments"] == 4
    assert "name" not in manifest
    coords = [(s["x"], s["y"]) for s in manifest["perSegment"]]
    assert coords == [(0, 0), (1, 0), (0, 1), (1, 1)]


def test_manifest_entry(split):
    manifest = build_manifest(split, edge_plan(split), name="Workbench")
    entry = manifest["perSegment"][1]
    assert entry == {
        "x": 1,
        "y": 0,
        "gridUnitsX": 1.5,
        "gridUnitsY": 5,
        "connectors": {"left": "female", "right": "none", "front": "none", "back": "male"},
        "artifact": "baseplate_segment_1_0",
    }
    assert manifest["name"] == "Workbench"


def test_manifest_reflects_overrides(split):
    plan = edge_plan(split, [SegmentEdgeOverride(0, 0, right_edge=EdgeType.FEMALE)])
    manifest = build_manifest(split, plan)
    assert manifest["perSegment"][0]["connectors"]["right"] == "female"
    assert manifest["perSegment"][1]["connectors"]["left"] == "male"


def test_missing_plan_entry(split):
    plan = edge_plan(split)
    del plan[(1, 1)]
    with pytest.raises(InternalConsistencyError):
        build_manifest(split, plan)


def test_write_manifest(tmp_path, split):
    manifest = build_manifest(split, edge_plan(split))
    path = tmp_path / "manifest.json"
    write_manifest(manifest, str(path))
    assert json.loads(path.read_text(encoding="utf-8")) == manifest


def test_artifact_name():
    assert segment_artifact_name(3, 2) == "baseplate_segment_3_2"
