"""Tests for experience scoring."""

import math

from core.scoring import ROUND_PARTICIPATION_EXPERIENCE, logarithmic_experience, no_experience


class TestScoring:
    """Tests for the scoring functions."""

    def test_participation_only(self):
        """Test a round without winnings earns the flat award."""
        assert logarithmic_experience(0) == ROUND_PARTICIPATION_EXPERIENCE

    def test_win_bonus(self):
        """Test the log-scaled bonus for a win."""
        expected = 10 + int(math.log(200) * (1.2 + math.sqrt(200) * 0.003) + 10)
        assert logarithmic_experience(200) == expected

    def test_monotonic(self):
        """Test bigger wins never earn less."""
        values = [logarithmic_experience(g) for g in (1, 10, 100, 1000, 10000)]
        assert values == sorted(values)

    def test_no_experience(self):
        """Test the null scoring function."""
        assert no_experience(500) == 0
