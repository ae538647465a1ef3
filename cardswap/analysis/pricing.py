"""
Asking price calculation.

A seller prices a collection entry either as a percentage of the catalog
reference price for its finish, or as a fixed amount.
"""

from cardswap.models.enums import PriceMode


def calculate_asking_price(
    price_mode: str,
    price_percentage: float,
    price_fixed: float | None,
    reference_price: float | None,
    minimum_price: float = 0.0,
) -> float | None:
    """
    Calculate the seller's asking price for one copy.

    Args:
        price_mode: "percentage" or "fixed"
        price_percentage: Percent of the reference price (percentage mode)
        price_fixed: Explicit price (fixed mode)
        reference_price: Catalog price for the entry's finish (foil or not)
        minimum_price: Seller's floor, applied to percentage prices only

    Returns:
        Price rounded to cents, or None when it cannot be derived
        (percentage mode without a reference price).
    """
    if price_mode == PriceMode.FIXED.value and price_fixed is not None:
        return price_fixed

    if reference_price is None:
        return None

    price = round(reference_price * (price_percentage / 100), 2)
    if minimum_price and price < minimum_price:
        return round(minimum_price, 2)
    return price


def price_exceeds_max(asking_price: float | None, max_price: float | None) -> bool:
    """True only when both prices are known and the asking price is higher."""
    return max_price is not None and asking_price is not None and asking_price > max_price


def price_efficiency(pairs: list[tuple[float | None, float | None]]) -> float:
    """
    Mean ratio of asking price to wishlist ceiling.

    Args:
        pairs: (asking_price, max_price) for each line the buyer receives

    Returns:
        Value in [0, 1]; lower means a better deal for the buyer.
        Defaults to 0.5 when no line has both prices.
    """
    ratios = [
        asking / ceiling
        for asking, ceiling in pairs
        if asking is not None and ceiling is not None and ceiling > 0
    ]
    if not ratios:
        return 0.5
    return max(0.0, min(sum(ratios) / len(ratios), 1.0))
