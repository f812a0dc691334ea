"""Pluggable experience scoring for settled rounds."""

import math
from typing import Callable

# Takes a player's gross winnings for the round and returns experience earned.
ScoringFunction = Callable[[int], int]

ROUND_PARTICIPATION_EXPERIENCE = 10


def logarithmic_experience(gross_winnings: int) -> int:
    """
    Default scoring: a flat participation award plus a log-scaled win bonus.

    Bonus = ln(g) * (1.2 + sqrt(g) * 0.003) + 10 for g > 0.
    """
    experience = ROUND_PARTICIPATION_EXPERIENCE
    if gross_winnings > 0:
        bonus = math.log(gross_winnings) * (1.2 + math.sqrt(gross_winnings) * 0.003) + 10
        experience += int(bonus)
    return experience


def no_experience(gross_winnings: int) -> int:
    """Scoring that awards nothing."""
    return 0
