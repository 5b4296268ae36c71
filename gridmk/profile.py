"""Foot and socket taper profiles.

A box foot and the baseplate socket it drops into share one taper stack:
a lower taper, a vertical riser and an upper taper. The foot is described
bottom-up from the bin floor, the socket top-down from the plate surface,
but both are derived from the same boundary levels so they always mate.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ConfigError
from .observe import Observer, notify

RISER_HEIGHT_MM = 1.8
LOWER_TAPER_FRACTION = 0.27  # of the height left after the riser; upper gets the rest
MAX_CHAMFER_ANGLE_DEG = 89.9

DEFAULT_FOOT_CHAMFER_ANGLE = 45.0
DEFAULT_FOOT_CHAMFER_HEIGHT = 4.75  # 0.8 + 1.8 + 2.15
DEFAULT_LIP_CHAMFER_HEIGHT = 4.4  # 0.7 + 1.8 + 1.9


@dataclass(frozen=True)
class ProfileStage:
    """One section of a taper stack."""

    name: str  # lower_taper, riser, upper_taper
    height: float
    inset: float  # horizontal inset gained across this section


@dataclass(frozen=True)
class Profile:
    """Derived geometry of a foot or socket taper stack."""

    kind: str  # foot or socket
    angle_deg: float
    total_height_mm: float
    stages: Tuple[ProfileStage, ...]
    # (z above the stack bottom, inset from the widest outline), bottom-up
    levels: Tuple[Tuple[float, float], ...]

    def pairs(self):
        """Stages as (height, inset) pairs in stack order."""
        return [(s.height, s.inset) for s in self.stages]

    @property
    def total_inset(self) -> float:
        """Inset at the narrow end of the stack."""
        return self.levels[0][1]

    def inset_at(self, z: float) -> float:
        """Inset from the widest outline at height ``z`` above the stack bottom."""
        if z <= self.levels[0][0]:
            return self.levels[0][1]
        for (z0, i0), (z1, i1) in zip(self.levels, self.levels[1:]):
            if z <= z1:
                if z == z1:
                    return i1
                return i0 + (i1 - i0) * (z - z0) / (z1 - z0)
        return self.levels[-1][1]


def check_chamfer(angle_deg: float, total_height_mm: float, what: str = "chamfer") -> None:
    """
    Validate a taper angle/height pair.

    Raises:
        ConfigError: If the angle is outside (0, 89.9] degrees or the height
            leaves no room for the tapers beside the riser
    """
    if not (0 < angle_deg <= MAX_CHAMFER_ANGLE_DEG):
        raise ConfigError(
            f"{what} angle must be in (0, {MAX_CHAMFER_ANGLE_DEG}] degrees, got: {angle_deg}"
        )
    if total_height_mm <= RISER_HEIGHT_MM:
        raise ConfigError(
            f"{what} height must exceed the {RISER_HEIGHT_MM}mm riser, got: {total_height_mm}"
        )


def taper_inset(height_mm: float, angle_deg: float) -> float:
    """Horizontal inset across a taper of the given height."""
    return height_mm * math.tan(math.radians(angle_deg))


def _stack(angle_deg: float, total_height_mm: float):
    remaining = total_height_mm - RISER_HEIGHT_MM
    lower = remaining * LOWER_TAPER_FRACTION
    upper = total_height_mm - RISER_HEIGHT_MM - lower
    lower_inset = taper_inset(lower, angle_deg)
    upper_inset = taper_inset(upper, angle_deg)
    levels = (
        (0.0, lower_inset + upper_inset),
        (lower, upper_inset),
        (lower + RISER_HEIGHT_MM, upper_inset),
        (total_height_mm, 0.0),
    )
    stages = (
        ProfileStage("lower_taper", lower, lower_inset),
        ProfileStage("riser", RISER_HEIGHT_MM, 0.0),
        ProfileStage("upper_taper", upper, upper_inset),
    )
    return stages, levels


def compute_foot_profile(
    angle_deg: float, total_height_mm: float, observer: Optional[Observer] = None
) -> Profile:
    """Taper stack of a box foot, listed bottom-up from the foot's contact face."""
    check_chamfer(angle_deg, total_height_mm, "foot chamfer")
    stages, levels = _stack(angle_deg, total_height_mm)
    notify(observer, "profile.foot", angle_deg=angle_deg, height_mm=total_height_mm, levels=levels)
    return Profile("foot", angle_deg, total_height_mm, stages, levels)


def compute_socket_profile(
    angle_deg: float, total_height_mm: float, observer: Optional[Observer] = None
) -> Profile:
    """Taper stack of a baseplate socket, listed top-down from the plate surface."""
    check_chamfer(angle_deg, total_height_mm, "socket chamfer")
    stages, levels = _stack(angle_deg, total_height_mm)
    notify(observer, "profile.socket", angle_deg=angle_deg, height_mm=total_height_mm, levels=levels)
    return Profile("socket", angle_deg, total_height_mm, tuple(reversed(stages)), levels)


def resolve_socket_params(baseplate, box=None) -> Tuple[float, float]:
    """
    Socket (angle, height) for a baseplate.

    With ``sync_socket_with_foot`` set the socket copies the foot of ``box``,
    or the default foot when no box is given; otherwise the baseplate's own
    socket fields are used.
    """
    if baseplate.sync_socket_with_foot:
        if box is None:
            return DEFAULT_FOOT_CHAMFER_ANGLE, DEFAULT_FOOT_CHAMFER_HEIGHT
        return box.foot_chamfer_angle, box.foot_chamfer_height
    return baseplate.socket_chamfer_angle, baseplate.socket_chamfer_height
