"""Cost of traversing a segment, in preference-adjusted seconds."""

import logging
import math

from slope_routing.config import get_setting
from slope_routing.models import Segment
from slope_routing.preference import (
    GenericPreferenceProvider,
    PreferenceProvider,
    ProfilePreferenceProvider,
    segment_preference,
)
from slope_routing.profile_manager import ProfileManager
from slope_routing.speed import (
    MAX_ADJUSTED_SPEED,
    GenericSpeedProvider,
    ProfileSpeedProvider,
    SpeedProvider,
)

logger = logging.getLogger(__name__)

SPEED_CONV = 3.6  # km/h to m/s
PREFERENCE_SCALE = 4
MIN_DIVISOR = 0.5
MAX_DIVISOR = MIN_DIVISOR + 1  # q = 1


def preference_divisor(preference: int) -> float:
    """Map a preference to 0.5 + q^2 with q in [0, 1]; better segments get larger divisors."""
    p = max(-1.0, min(1.0, preference / PREFERENCE_SCALE))
    q = (p + 1) / 2
    return MIN_DIVISOR + q * q


class DynamicWeighting:
    """Travel time divided by a preference factor, plus a heading penalty."""

    def __init__(
        self,
        speed_provider: SpeedProvider,
        preference_provider: PreferenceProvider,
        heading_penalty: float = 300.0,
    ):
        self.speed_provider = speed_provider
        self.preference_provider = preference_provider
        self.heading_penalty = heading_penalty

    def calc_weight(self, segment: Segment, reverse: bool) -> float:
        speed = self.speed_provider.calc_speed(segment, reverse)
        if speed == 0:
            return math.inf

        time = segment.distance / speed * SPEED_CONV
        if segment.is_unfavored(reverse):
            time += self.heading_penalty

        preference = segment_preference(self.preference_provider, segment, reverse)
        return time / preference_divisor(preference)

    def min_weight(self, distance: float) -> float:
        """Lower bound of calc_weight for any segment of this length."""
        return distance * SPEED_CONV / (MAX_ADJUSTED_SPEED * MAX_DIVISOR)


def create_weighting(manager: ProfileManager | None = None, config: dict | None = None) -> DynamicWeighting:
    """Pick generic or personalized providers once and wire them into a weighting."""
    heading_penalty = float(get_setting(config, "heading_penalty"))
    if manager is None or not manager.has_profile:
        logger.debug("Using generic weighting")
        return DynamicWeighting(GenericSpeedProvider(), GenericPreferenceProvider(), heading_penalty)

    logger.debug("Using personalized weighting")
    return DynamicWeighting(
        ProfileSpeedProvider(manager),
        ProfilePreferenceProvider(manager),
        heading_penalty,
    )
