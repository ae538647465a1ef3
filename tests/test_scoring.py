"""Tests for match scoring."""

import pytest

from cardswap.analysis.scoring import calculate_match_score, display_score
from cardswap.models.enums import MatchType


def score(**overrides) -> float:
    values = {
        "match_type": MatchType.ONE_WAY_BUY,
        "cards_i_want": 1,
        "cards_they_want": 0,
        "value_i_want": 0.0,
        "value_they_want": 0.0,
        "distance_km": None,
        "has_price_warnings": False,
        "price_efficiency": 1.0,
    }
    values.update(overrides)
    return calculate_match_score(**values)


class TestCalculateMatchScore:
    def test_perfect_match_scores_100(self) -> None:
        """Two-way, 10+ cards, $200+, 0 km, no warnings, efficiency 0."""
        result = score(
            match_type=MatchType.TWO_WAY,
            cards_i_want=6,
            cards_they_want=6,
            value_i_want=150.0,
            value_they_want=150.0,
            distance_km=0.0,
            price_efficiency=0.0,
        )

        assert result == 100.0

    def test_type_points(self) -> None:
        """Two-way earns 30, one-way 15."""
        base = {"cards_i_want": 0, "cards_they_want": 0}

        assert score(match_type=MatchType.TWO_WAY, **base) == 30.0
        assert score(match_type=MatchType.ONE_WAY_SELL, **base) == 15.0
        assert score(match_type="one_way_buy", **base) == 15.0

    def test_price_efficiency_component(self) -> None:
        assert score(cards_i_want=0, price_efficiency=0.5) == 15.0 + 12.5

    def test_card_count_capped(self) -> None:
        assert score(cards_i_want=5) == 15.0 + 12.5
        assert score(cards_i_want=30) == 15.0 + 25.0

    def test_value_capped(self) -> None:
        assert score(cards_i_want=0, value_i_want=50.0, value_they_want=50.0) == 15.0 + 10.0
        assert score(cards_i_want=0, value_i_want=1000.0) == 15.0 + 20.0

    def test_distance_decays_to_zero_at_50km(self) -> None:
        assert score(cards_i_want=0, distance_km=10.0) == 15.0 + 12.0
        assert score(cards_i_want=0, distance_km=50.0) == 15.0
        assert score(cards_i_want=0, distance_km=120.0) == 15.0

    def test_unknown_distance_scores_nothing(self) -> None:
        assert score(cards_i_want=0, distance_km=None) == 15.0

    def test_price_warning_penalty(self) -> None:
        clean = score(value_i_want=12.0, distance_km=4.0)
        warned = score(value_i_want=12.0, distance_km=4.0, has_price_warnings=True)

        assert clean - warned == pytest.approx(5.0)

    def test_never_negative(self) -> None:
        """Penalty on an otherwise empty one-way match stays within bounds."""
        result = score(
            cards_i_want=0,
            has_price_warnings=True,
            price_efficiency=1.0,
            distance_km=None,
        )

        assert 0.0 <= result <= 100.0

    def test_out_of_range_efficiency_is_clamped(self) -> None:
        assert score(cards_i_want=0, price_efficiency=1.7) == 15.0
        assert score(cards_i_want=0, price_efficiency=-1.0) == 15.0 + 25.0


class TestDisplayScore:
    def test_tenth_of_score(self) -> None:
        assert display_score(87.36) == 8.7
        assert display_score(100.0) == 10.0
        assert display_score(0.0) == 0.0
