import math

import pytest

from gridmk.config import BaseplateConfig, BoxConfig
from gridmk.errors import ConfigError
from gridmk.profile import (
    RISER_HEIGHT_MM,
    compute_foot_profile,
    compute_socket_profile,
    resolve_socket_params,
    taper_inset,
)


class TestFootProfile:
    def test_standard_stack(self):
        foot = compute_foot_profile(45, 4.75)
        assert [s.name for s in foot.stages] == ["lower_taper", "riser", "upper_taper"]
        lower, riser, upper = foot.pairs()
        assert lower[0] == pytest.approx(2.95 * 0.27)
        assert riser == (RISER_HEIGHT_MM, 0.0)
        assert upper[0] == pytest.approx(2.95 * 0.73)
        assert sum(h for h, _ in foot.pairs()) == pytest.approx(4.75)
        assert foot.total_inset == pytest.approx(2.95)

    def test_inset_follows_tangent(self):
        foot = compute_foot_profile(30, 6.0)
        lower, _, upper = foot.pairs()
        assert lower[1] == pytest.approx(lower[0] * math.tan(math.radians(30)))
        assert upper[1] == pytest.approx(upper[0] * math.tan(math.radians(30)))

    def test_inset_at_interpolates(self):
        foot = compute_foot_profile(45, 4.75)
        lower_h = foot.stages[0].height
        upper_inset = foot.stages[2].inset
        assert foot.inset_at(0) == foot.total_inset
        assert foot.inset_at(4.75) == 0.0
        assert foot.inset_at(lower_h + RISER_HEIGHT_MM / 2) == upper_inset
        assert foot.inset_at(-1) == foot.total_inset
        assert foot.inset_at(10) == 0.0


class TestSocketProfile:
    def test_stack_listed_top_down(self):
        socket = compute_socket_profile(45, 4.75)
        assert [s.name for s in socket.stages] == ["upper_taper", "riser", "lower_taper"]

    @pytest.mark.parametrize("angle,height", [(45, 4.75), (30, 5.0), (60, 4.4), (89.9, 2.0), (0.5, 10.0)])
    def test_fit_contract(self, angle, height):
        foot = compute_foot_profile(angle, height)
        socket = compute_socket_profile(angle, height)
        heights = [z for z, _ in foot.levels]
        heights += [(a + b) / 2 for a, b in zip(heights, heights[1:])]
        for z in heights:
            assert foot.inset_at(z) == socket.inset_at(z)
        assert foot.levels == socket.levels


class TestChamferValidation:
    @pytest.mark.parametrize("angle", [0, -10, 90, 89.95])
    def test_angle_out_of_range(self, angle):
        with pytest.raises(ConfigError):
            compute_foot_profile(angle, 4.75)
        with pytest.raises(ConfigError):
            compute_socket_profile(angle, 4.75)

    def test_upper_angle_bound_is_inclusive(self):
        assert compute_foot_profile(89.9, 4.75).angle_deg == 89.9

    def test_height_must_exceed_riser(self):
        with pytest.raises(ConfigError):
            compute_foot_profile(45, RISER_HEIGHT_MM)


def test_taper_inset():
    assert taper_inset(2.0, 30) == pytest.approx(2 / math.sqrt(3))
    assert taper_inset(0.0, 45) == 0.0


class TestSocketSync:
    def test_sync_without_box_uses_default_foot(self):
        plate = BaseplateConfig(socket_chamfer_angle=60, socket_chamfer_height=6)
        assert resolve_socket_params(plate) == (45.0, 4.75)

    def test_sync_copies_box_foot(self):
        plate = BaseplateConfig()
        box = BoxConfig(foot_chamfer_angle=50, foot_chamfer_height=5)
        assert resolve_socket_params(plate, box) == (50, 5)

    def test_unsynced_plate_uses_its_own_socket(self):
        plate = BaseplateConfig(sync_socket_with_foot=False, socket_chamfer_angle=60, socket_chamfer_height=6)
        box = BoxConfig(foot_chamfer_angle=50, foot_chamfer_height=5)
        assert resolve_socket_params(plate, box) == (60, 6)
