import pytest

from gridmk.config import BaseplateConfig, BoxConfig, build_baseplate_config
from gridmk.errors import ConfigError
from gridmk.observe import RecordingObserver
from gridmk.pipeline import compute_baseplate_grid, generate_baseplate, generate_box


class _FakeRenderer:
    def __init__(self):
        self.calls = []

    def render_many(self, descriptions, out_dir):
        self.calls.append(([d.key for d in descriptions], out_dir))
        return []


def test_generate_box():
    result = generate_box(BoxConfig())
    assert result.kind == "box"
    assert [d.artifact_name for d in result.descriptions] == ["box"]
    assert result.manifest is None
    assert result.outcomes == ()
    assert result.failures == ()


def test_unsplit_baseplate():
    result = generate_baseplate(BaseplateConfig(width=4, depth=2))
    assert [d.kind for d in result.descriptions] == ["baseplate"]
    assert result.manifest is None
    assert result.split is None
    assert result.grid.grid_units_x == 4


def test_fill_mode_grid():
    grid = compute_baseplate_grid(
        BaseplateConfig(sizing_mode="fill_area_mm", target_width_mm=200, target_depth_mm=180)
    )
    assert (grid.grid_units_x, grid.grid_units_y) == (4.5, 4)
    assert grid.padding_near_x == 5.5


class TestSplitBaseplate:
    @pytest.fixture
    def config(self):
        return BaseplateConfig(
            sizing_mode="fill_area_mm",
            target_width_mm=500,
            target_depth_mm=300,
            split_enabled=True,
            name="Drawer",
        )

    def test_one_description_per_segment_in_row_major_order(self, config):
        result = generate_baseplate(config)
        assert (result.split.segments_x, result.split.segments_y) == (3, 2)
        assert [d.key for d in result.descriptions] == ["0_0", "1_0", "2_0", "0_1", "1_1", "2_1"]
        assert result.manifest["totalSegments"] == 6
        assert result.manifest["name"] == "Drawer"
        assert [e["artifact"] for e in result.manifest["perSegment"]] == [
            d.artifact_name for d in result.descriptions
        ]

    def test_parallel_emission_matches_sequential(self, config):
        sequential = generate_baseplate(config)
        parallel = generate_baseplate(config, emit_workers=4)
        assert parallel.descriptions == sequential.descriptions

    def test_observer_sees_grid_and_split(self, config):
        observer = RecordingObserver()
        generate_baseplate(config, observer=observer)
        names = observer.names()
        assert names[:2] == ["grid.axis", "grid.axis"]
        assert "split.tiling" in names

    def test_contradictory_overrides_rejected(self):
        config = build_baseplate_config(
            width=11,
            depth=7,
            split_enabled=True,
            edge_overrides=[
                {"segment_x": 0, "segment_y": 0, "right_edge": "female"},
                {"segment_x": 1, "segment_y": 0, "left_edge": "female"},
            ],
        )
        with pytest.raises(ConfigError):
            generate_baseplate(config)

    def test_renderer_gets_every_segment(self, config, tmp_path):
        renderer = _FakeRenderer()
        generate_baseplate(config, renderer=renderer, out_dir=tmp_path)
        keys, out_dir = renderer.calls[0]
        assert len(keys) == 6
        assert out_dir == tmp_path


def test_render_needs_output_directory():
    with pytest.raises(ConfigError):
        generate_box(BoxConfig(), renderer=_FakeRenderer())


def test_shallow_puzzle_rejected_before_any_computation():
    observer = RecordingObserver()
    config = BaseplateConfig(
        sizing_mode="fill_area_mm", edge_pattern="puzzle", tooth_width=6.0, tooth_depth=2.0
    )
    with pytest.raises(ConfigError):
        generate_baseplate(config, observer=observer)
    assert observer.events == []


def test_invalid_worker_count():
    with pytest.raises(ConfigError):
        generate_baseplate(BaseplateConfig(), emit_workers=0)
