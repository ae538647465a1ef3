"""
Match desirability scoring.

Produces a 0-100 score from the shape of a match. Each component is capped at
its own maximum and the sum is clamped; the UI shows score / 10.
"""

from cardswap.models.enums import MatchType

TWO_WAY_POINTS = 30.0
ONE_WAY_POINTS = 15.0

PRICE_EFFICIENCY_POINTS = 25.0

CARD_COUNT_POINTS = 25.0
CARD_COUNT_CAP = 10

VALUE_POINTS = 20.0
VALUE_CAP_USD = 200.0

DISTANCE_POINTS = 15.0
DISTANCE_DECAY_PER_KM = 0.3

PRICE_WARNING_PENALTY = 5.0

MAX_SCORE = 100.0


def calculate_match_score(
    match_type: MatchType | str,
    cards_i_want: int,
    cards_they_want: int,
    value_i_want: float,
    value_they_want: float,
    distance_km: float | None,
    has_price_warnings: bool,
    price_efficiency: float,
) -> float:
    """
    Calculate the composite score of a match.

    Args:
        match_type: two_way earns full type credit, one-way matches half
        cards_i_want: Lines the scoring user receives
        cards_they_want: Lines the counterpart receives
        value_i_want: USD value of the scoring user's side
        value_they_want: USD value of the counterpart's side
        distance_km: Distance between the users; None scores no distance points
        has_price_warnings: Any line priced above its wishlist ceiling
        price_efficiency: 0-1, lower means asking prices sit well below ceilings

    Returns:
        Score in [0, 100], rounded to two decimals.
    """
    score = TWO_WAY_POINTS if MatchType(match_type) == MatchType.TWO_WAY else ONE_WAY_POINTS

    efficiency = max(0.0, min(price_efficiency, 1.0))
    score += (1 - efficiency) * PRICE_EFFICIENCY_POINTS

    total_cards = cards_i_want + cards_they_want
    score += min(total_cards, CARD_COUNT_CAP) / CARD_COUNT_CAP * CARD_COUNT_POINTS

    total_value = value_i_want + value_they_want
    score += min(total_value, VALUE_CAP_USD) / VALUE_CAP_USD * VALUE_POINTS

    if distance_km is not None:
        score += max(0.0, DISTANCE_POINTS - distance_km * DISTANCE_DECAY_PER_KM)

    if has_price_warnings:
        score -= PRICE_WARNING_PENALTY

    return round(max(0.0, min(score, MAX_SCORE)), 2)


def display_score(match_score: float) -> float:
    """Score on the 0-10 scale shown to users."""
    return round(match_score / 10, 1)
