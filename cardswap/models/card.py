from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class CatalogCard:
    """
    Canonical reference data for one printing.

    Attributes:
        scryfall_id: Printing identity (one set + collector number)
        oracle_id: Card identity shared by all reprints
        name: Card name
        set_code: Set code (e.g., "DMU")
        prices_usd: Reference price for a non-foil copy
        prices_usd_foil: Reference price for a foil copy
    """

    scryfall_id: str
    oracle_id: str
    name: str
    set_code: str
    set_name: str = ""
    collector_number: str | None = None
    image_uri: str | None = None
    image_uri_small: str | None = None
    prices_usd: float | None = None
    prices_usd_foil: float | None = None
    rarity: str | None = None
    type_line: str | None = None
    mana_cost: str | None = None
    colors: tuple[str, ...] = ()
    color_identity: tuple[str, ...] = ()
    cmc: float | None = None
    legalities: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    released_at: str | None = None

    def reference_price(self, foil: bool) -> float | None:
        """Reference price for the finish in question."""
        return self.prices_usd_foil if foil else self.prices_usd

    def snapshot(self) -> "CardSnapshot":
        return CardSnapshot(
            card_id=self.scryfall_id,
            name=self.name,
            set_code=self.set_code,
            image_uri=self.image_uri,
        )


@dataclass(frozen=True, slots=True)
class CardSnapshot:
    """
    Catalog fields frozen onto a match line when it is written.

    A later catalog refresh must not rewrite the terms of an existing trade,
    so lines carry their own copy instead of joining to the catalog.
    """

    card_id: str
    name: str
    set_code: str
    image_uri: str | None = None
