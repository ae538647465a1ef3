"""
Wishlist/collection eligibility predicates.
"""

from cardswap.models.enums import CONDITION_ORDER, EditionPreference, FoilPreference


def condition_meets_minimum(collection_condition: str, min_condition: str) -> bool:
    """
    Check a copy's condition against a wishlist minimum.

    Conditions are ordered NM > LP > MP > HP > DMG; a copy qualifies when it
    is at least as good as the minimum. Unknown codes never qualify.
    """
    if collection_condition not in CONDITION_ORDER or min_condition not in CONDITION_ORDER:
        return False
    return CONDITION_ORDER.index(collection_condition) <= CONDITION_ORDER.index(min_condition)


def foil_matches(is_foil: bool, foil_preference: str) -> bool:
    if foil_preference == FoilPreference.FOIL_ONLY.value:
        return is_foil
    if foil_preference == FoilPreference.NON_FOIL.value:
        return not is_foil
    return True


def edition_matches(
    printing_id: str,
    edition_preference: str,
    specific_editions: list[str] | None,
) -> bool:
    """Any edition, or the printing is one of the listed ones."""
    if edition_preference != EditionPreference.SPECIFIC.value:
        return True
    return printing_id in (specific_editions or [])


def is_eligible(
    *,
    wishlist_oracle_id: str,
    min_condition: str,
    foil_preference: str,
    edition_preference: str,
    specific_editions: list[str] | None,
    card_oracle_id: str,
    printing_id: str,
    condition: str,
    is_foil: bool,
) -> bool:
    """
    Full matching predicate for one wishlist entry and one collection entry.

    Quantities are not compared here.
    """
    if not wishlist_oracle_id or wishlist_oracle_id != card_oracle_id:
        return False
    if not edition_matches(printing_id, edition_preference, specific_editions):
        return False
    if not condition_meets_minimum(condition, min_condition):
        return False
    return foil_matches(is_foil, foil_preference)
