import json
import sys

import pytest

from gridmk.cli import main, parse_set_args
from gridmk.errors import ConfigError

FAKE_OPENSCAD = """#!/bin/sh
printf 'solid fake\\nendsolid fake\\n' > "$2"
"""
BROKEN_OPENSCAD = """#!/bin/sh
echo "ERROR: CGAL failed" >&2
exit 1
"""


def _script(tmp_path, body):
    path = tmp_path / "openscad"
    path.write_text(body)
    path.chmod(0o755)
    return str(path)


def test_parse_set_args():
    assert parse_set_args(["width=3", "labelText = Bits "]) == {"width": "3", "labelText": "Bits"}
    assert parse_set_args(None) == {}
    with pytest.raises(ConfigError):
        parse_set_args(["width"])
    with pytest.raises(ConfigError):
        parse_set_args(["=3"])


class TestBox:
    def test_writes_scad(self, tmp_path, capsys):
        main(["box", "--size", "2x1x3", "--dividers", "1x0", "--label", "-o", str(tmp_path)])
        text = (tmp_path / "box.scad").read_text(encoding="utf-8")
        assert "width_units = 2.0000;" in text
        assert "dividers_x = 1;" in text
        assert "Wrote" in capsys.readouterr().out

    def test_config_file_and_set(self, tmp_path):
        config = tmp_path / "box.json"
        config.write_text(json.dumps({"width": 1, "depth": 1, "lipStyle": "none"}))
        main(["box", "--config", str(config), "--set", "wallThickness=1.2", "-o", str(tmp_path)])
        text = (tmp_path / "box.scad").read_text(encoding="utf-8")
        assert 'lip_style = "none";' in text
        assert "wall_thickness = 1.2000;" in text

    def test_invalid_size_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["box", "--size", "2.3x1", "-o", str(tmp_path)])
        assert excinfo.value.code == 1
        assert "Config error" in capsys.readouterr().err
        assert not (tmp_path / "box.scad").exists()

    def test_bad_dividers(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["box", "--dividers", "two", "-o", str(tmp_path)])
        assert excinfo.value.code == 1

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["box", "--config", str(tmp_path / "nope.json"), "-o", str(tmp_path)])
        assert excinfo.value.code == 1


class TestBaseplate:
    def test_split_writes_segments_and_manifest(self, tmp_path, capsys):
        main(["baseplate", "--size", "11x7", "--bed", "220x220", "--pattern", "dovetail", "-o", str(tmp_path)])
        scad = sorted(p.name for p in tmp_path.glob("*.scad"))
        assert len(scad) == 6
        assert "baseplate_segment_2_1.scad" in scad
        manifest = json.loads((tmp_path / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["segmentsX"] == 3
        assert manifest["perSegment"][0]["connectors"]["right"] == "male"
        assert "(6 segments)" in capsys.readouterr().out

    def test_fill_mode(self, tmp_path):
        main(["baseplate", "--target", "200x180", "--style", "magnet", "-o", str(tmp_path)])
        text = (tmp_path / "baseplate.scad").read_text(encoding="utf-8")
        assert "width_units = 4.5000;" in text
        assert "use_fill_mode = true;" in text
        assert not (tmp_path / "manifest.json").exists()

    def test_size_and_target_are_exclusive(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["baseplate", "--size", "2x2", "--target", "200x200", "-o", str(tmp_path)])
        assert excinfo.value.code == 2

    def test_box_config_syncs_sockets(self, tmp_path):
        box = tmp_path / "box.json"
        box.write_text(json.dumps({"footChamferAngle": 40, "footChamferHeight": 5}))
        main(["baseplate", "--size", "2x2", "--box-config", str(box), "-o", str(tmp_path)])
        text = (tmp_path / "baseplate.scad").read_text(encoding="utf-8")
        assert "socket_chamfer_angle = 40.0000;" in text


@pytest.mark.skipif(sys.platform == "win32", reason="stand-in executables are shell scripts")
class TestRender:
    def test_render_writes_meshes(self, tmp_path, capsys):
        binary = _script(tmp_path, FAKE_OPENSCAD)
        out = tmp_path / "out"
        main(["box", "--size", "1x1x2", "-o", str(out), "--render", "--openscad", binary])
        assert (out / "box.stl").exists()
        assert "box.stl" in capsys.readouterr().out

    def test_render_failure_exits_2(self, tmp_path, capsys):
        binary = _script(tmp_path, BROKEN_OPENSCAD)
        out = tmp_path / "out"
        with pytest.raises(SystemExit) as excinfo:
            main(["baseplate", "--size", "2x2", "-o", str(out), "--render", "--openscad", binary])
        assert excinfo.value.code == 2
        assert "Render error" in capsys.readouterr().err
        assert (out / "baseplate.scad").exists()

    def test_invalid_timeout_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["box", "-o", str(tmp_path), "--render", "--timeout", "0"])
        assert excinfo.value.code == 1


def test_command_required():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
