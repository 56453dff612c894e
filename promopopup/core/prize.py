# ==============================================================================
# Prize Selector
# ==============================================================================
"""
Prize wheel outcome selection.

Selection is uniform over the segment list: every segment is equally likely
regardless of how wide its arc is drawn. The wheel's resting angle is derived
from the chosen index afterwards and never feeds back into the choice.
"""

import random
from dataclasses import dataclass

from promopopup.core.errors import ConfigurationError
from promopopup.core.models import Segment

_rng = random.Random()


@dataclass(frozen=True)
class SpinOutcome:
    """Result of one wheel spin."""

    index: int
    segment: Segment
    rotation: float

    @property
    def is_win(self) -> bool:
        return self.segment.is_win


def select_prize(segments: list[Segment], rng: random.Random | None = None) -> tuple[int, Segment]:
    """
    Pick one segment uniformly at random.

    Args:
        segments: Configured wheel segments
        rng: Optional random source (seeded in tests)

    Returns:
        (index, segment) of the chosen slice

    Raises:
        ConfigurationError: If the segment list is empty
    """
    if not segments:
        raise ConfigurationError("Cannot select a prize from an empty segment list")
    index = (rng or _rng).randrange(len(segments))
    return index, segments[index]


def target_angle(index: int, count: int) -> float:
    """Angle (degrees) of the centre of slice ``index`` on an ``count``-slice wheel."""
    segment_angle = 360 / count
    return index * segment_angle + segment_angle / 2


def wheel_rotation(index: int, count: int, rng: random.Random | None = None) -> float:
    """
    Final CSS-style rotation for the spin animation.

    3 to 5 full turns for effect, then rotate back by the target angle so the
    chosen slice stops under the pointer.
    """
    full_rotations = 3 + (rng or _rng).random() * 2
    return full_rotations * 360 + (360 - target_angle(index, count))


def spin(segments: list[Segment], rng: random.Random | None = None) -> SpinOutcome:
    """Select a prize, then derive its cosmetic rotation."""
    index, segment = select_prize(segments, rng)
    rotation = wheel_rotation(index, len(segments), rng)
    return SpinOutcome(index=index, segment=segment, rotation=rotation)
