from cardswap.analysis.eligibility import (
    condition_meets_minimum,
    edition_matches,
    foil_matches,
    is_eligible,
)
from cardswap.analysis.geo import haversine_km, within_either_radius
from cardswap.analysis.perspective import canonical_pair, to_perspective
from cardswap.analysis.pricing import calculate_asking_price, price_efficiency, price_exceeds_max
from cardswap.analysis.scoring import calculate_match_score, display_score

__all__ = [
    "calculate_asking_price",
    "calculate_match_score",
    "canonical_pair",
    "condition_meets_minimum",
    "display_score",
    "edition_matches",
    "foil_matches",
    "haversine_km",
    "is_eligible",
    "price_efficiency",
    "price_exceeds_max",
    "to_perspective",
    "within_either_radius",
]
