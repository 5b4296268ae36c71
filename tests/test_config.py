"""Tests for config defaults, validation, migration and builders."""

import pytest

from gridmk.config import (
    CONFIG_SCHEMA_VERSION,
    BaseplateConfig,
    BoxConfig,
    RenderSettings,
    build_baseplate_config,
    build_box_config,
    detect_schema_version,
    migrate_baseplate_record,
    migrate_box_record,
    parse_dimensions,
    parse_footprint,
    snake_case,
)
from gridmk.connectors import EdgeType, SegmentEdgeOverride
from gridmk.errors import ConfigError


class TestDefaults:
    def test_box_defaults_are_valid(self):
        config = BoxConfig()
        config.validate()
        assert config.grid_size == 42.0
        assert (config.foot_chamfer_angle, config.foot_chamfer_height) == (45.0, 4.75)
        assert (config.lip_chamfer_angle, config.lip_chamfer_height) == (45.0, 4.4)
        assert config.outer_width_mm == 84

    def test_baseplate_defaults_are_valid(self):
        config = BaseplateConfig()
        config.validate()
        assert (config.printer_bed_width, config.printer_bed_depth) == (220.0, 220.0)
        assert config.connector_tolerance == 0.3
        assert (config.edge_pattern, config.tooth_width, config.tooth_depth) == ("wineglass", 6.0, 6.0)
        assert config.fill_mode is False


class TestBoxValidation:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("width", 2.3),
            ("depth", 0),
            ("height", -1),
            ("wall_thickness", 0),
            ("floor_thickness", -0.1),
            ("grid_size", 0),
            ("lip_style", "fancy"),
            ("corner_radius", 21),
            ("foot_chamfer_angle", 0),
            ("foot_chamfer_angle", 90),
            ("lip_chamfer_height", 1.0),
        ],
    )
    def test_invalid_field(self, field, value):
        with pytest.raises(ConfigError):
            BoxConfig(**{field: value}).validate()

    def test_magnet_size_checked_only_when_enabled(self):
        BoxConfig(magnet_diameter=0).validate()
        with pytest.raises(ConfigError):
            BoxConfig(magnet_enabled=True, magnet_diameter=0).validate()


class TestBaseplateValidation:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("sizing_mode", "auto"),
            ("width", 1.2),
            ("padding_alignment", "middle"),
            ("style", "hex"),
            ("printer_bed_width", 0),
            ("connector_tolerance", -0.1),
            ("edge_pattern", "zigzag"),
            ("concave_depth", 150),
            ("wineglass_aspect_ratio", 3.0),
            ("tooth_width", 41.9),
            ("corner_segments", 2),
        ],
    )
    def test_invalid_field(self, field, value):
        with pytest.raises(ConfigError):
            BaseplateConfig(**{field: value}).validate()

    def test_fill_mode_checks_targets_not_units(self):
        BaseplateConfig(sizing_mode="fill_area_mm", width=1.2).validate()
        with pytest.raises(ConfigError):
            BaseplateConfig(sizing_mode="fill_area_mm", target_width_mm=0).validate()

    def test_socket_angle_checked_only_when_not_synced(self):
        BaseplateConfig(socket_chamfer_angle=95).validate()
        with pytest.raises(ConfigError):
            BaseplateConfig(socket_chamfer_angle=95, sync_socket_with_foot=False).validate()

    @pytest.mark.parametrize("pattern", ["puzzle", "puzzle_smooth"])
    def test_shallow_bulb_tooth_rejected(self, pattern):
        with pytest.raises(ConfigError, match="tooth_depth"):
            BaseplateConfig(edge_pattern=pattern, tooth_width=6.0, tooth_depth=2.0).validate()
        BaseplateConfig(edge_pattern=pattern, tooth_width=6.0, tooth_depth=2.5).validate()

    def test_shallow_tooth_allowed_without_bulb(self):
        BaseplateConfig(edge_pattern="dovetail", tooth_width=6.0, tooth_depth=2.0).validate()

    def test_pattern_params(self):
        params = BaseplateConfig(concave_depth=20, wineglass_aspect_ratio=1.5).pattern_params
        assert (params.concave_depth, params.wineglass_aspect_ratio) == (20, 1.5)


class TestMigration:
    def test_snake_case(self):
        assert snake_case("gridUnitsX") == "grid_units_x"
        assert snake_case("magnetEnabled") == "magnet_enabled"
        assert snake_case("already_snake") == "already_snake"

    def test_detect_version(self):
        assert detect_schema_version({}) == CONFIG_SCHEMA_VERSION
        assert detect_schema_version({"foot_riser_height": 1.8}) == 1
        assert detect_schema_version({"inner_wall_floor_radius": 1}) == 2
        assert detect_schema_version({"schema_version": "2"}) == 2

    @pytest.mark.parametrize("version", [0, 9, "abc"])
    def test_bad_version_rejected(self, version):
        with pytest.raises(ConfigError):
            detect_schema_version({"schema_version": version})

    def test_v1_box_tapers_collapse(self):
        migrated = migrate_box_record(
            {
                "footLowerTaperHeight": 0.8,
                "footRiserHeight": 1.8,
                "footUpperTaperHeight": 2.15,
                "footBottomDiameter": 10,
                "width": 3,
            }
        )
        assert migrated == {"width": 3, "foot_chamfer_height": 4.75, "foot_chamfer_angle": 45.0}

    def test_v1_partial_tapers_use_v1_defaults(self):
        migrated = migrate_box_record({"foot_riser_height": 2.0})
        assert migrated["foot_chamfer_height"] == pytest.approx(4.95)

    def test_v1_keeps_explicit_chamfer(self):
        migrated = migrate_box_record({"foot_riser_height": 1.8, "foot_chamfer_height": 5.0})
        assert migrated["foot_chamfer_height"] == 5.0

    def test_v2_box_fields_dropped(self):
        migrated = migrate_box_record({"innerWallFloorRadius": 1.0, "innerEdgeBevelSegments": 4, "depth": 1})
        assert migrated == {"depth": 1}

    def test_v1_baseplate_keeps_its_own_socket(self):
        migrated = migrate_baseplate_record(
            {"socketLowerTaperHeight": 0.7, "socketRiserHeight": 1.8, "socketUpperTaperHeight": 2.15}
        )
        assert migrated["socket_chamfer_height"] == pytest.approx(4.65)
        assert migrated["socket_chamfer_angle"] == 45.0
        assert migrated["sync_socket_with_foot"] is False

    def test_unsupported_fields_dropped(self):
        assert migrate_box_record({"fingerSlide": True, "wallPattern": "hex"}) == {}
        assert migrate_baseplate_record({"connectorRoofIntensity": 0.5}) == {}

    def test_unknown_fields_rejected(self):
        with pytest.raises(ConfigError, match="colour"):
            migrate_box_record({"colour": "red"})
        with pytest.raises(ConfigError):
            migrate_baseplate_record({"foo": 1})

    def test_record_must_be_a_mapping(self):
        with pytest.raises(ConfigError):
            migrate_box_record([("width", 2)])


class TestBuilders:
    def test_defaults_only(self):
        assert build_box_config() == BoxConfig()
        assert build_baseplate_config() == BaseplateConfig()

    def test_record_and_overrides_merge(self):
        config = build_box_config({"width": "3", "magnetEnabled": "yes"}, height=4)
        assert config.width == 3.0
        assert config.magnet_enabled is True
        assert config.height == 4.0

    def test_overrides_win_over_record(self):
        config = build_box_config({"width": 3}, width=1.5)
        assert config.width == 1.5

    def test_int_fields(self):
        assert build_box_config(dividers_x="2").dividers_x == 2
        with pytest.raises(ConfigError):
            build_box_config(dividers_x="2.5")

    def test_bad_boolean(self):
        with pytest.raises(ConfigError):
            build_box_config(label_enabled="maybe")

    def test_free_text_kept_as_metadata(self):
        assert build_box_config(labelText="Screws M3").label_text == "Screws M3"

    def test_merged_result_is_validated(self):
        with pytest.raises(ConfigError):
            build_box_config(width=2.3)

    def test_edge_overrides_from_records(self):
        config = build_baseplate_config(
            {"edgeOverrides": [{"segmentX": 0, "segmentY": 0, "rightEdge": "female"}]}
        )
        assert config.edge_overrides == (SegmentEdgeOverride(0, 0, right_edge=EdgeType.FEMALE),)

    def test_edge_overrides_none(self):
        assert build_baseplate_config(edge_overrides=None).edge_overrides == ()

    def test_v1_record_builds(self):
        config = build_baseplate_config({"socketRiserHeight": 1.8})
        assert config.sync_socket_with_foot is False
        assert config.socket_chamfer_height == pytest.approx(4.65)


class TestRenderSettings:
    def test_from_env(self):
        settings = RenderSettings.from_env(
            {"OPENSCAD_PATH": "/opt/openscad", "GRIDMK_RENDER_TIMEOUT": "30", "GRIDMK_RENDER_JOBS": "4"}
        )
        assert settings == RenderSettings("/opt/openscad", 30.0, 4)

    def test_defaults_when_unset(self):
        assert RenderSettings.from_env({}) == RenderSettings()

    @pytest.mark.parametrize(
        "env",
        [{"GRIDMK_RENDER_JOBS": "x"}, {"GRIDMK_RENDER_JOBS": "0"}, {"GRIDMK_RENDER_TIMEOUT": "-5"}],
    )
    def test_invalid_env(self, env):
        with pytest.raises(ConfigError):
            RenderSettings.from_env(env)

    def test_unknown_format(self):
        with pytest.raises(ConfigError):
            RenderSettings(output_format="obj").validate()


class TestParsing:
    def test_dimensions(self):
        assert parse_dimensions("2x1.5x6") == (2.0, 1.5, 6.0)
        assert parse_dimensions("2 X 3") == (2.0, 3.0, None)

    @pytest.mark.parametrize("text", ["2", "1x2x3x4", "axb", "0x2", "2x-1"])
    def test_bad_dimensions(self, text):
        with pytest.raises(ConfigError):
            parse_dimensions(text)

    def test_footprint(self):
        assert parse_footprint("220x200") == (220.0, 200.0)
        with pytest.raises(ConfigError):
            parse_footprint("2x3x4")
