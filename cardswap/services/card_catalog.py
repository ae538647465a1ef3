"""
Card catalog service.

Read-only lookups of canonical printing data for the matching engine, and
ingest of Scryfall bulk data into the ``cards`` table.
"""

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.config import settings
from cardswap.db.operations import card_to_model, upsert_card
from cardswap.models.card import CatalogCard
from cardswap.models.db import CardDB

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"
BULK_TYPE = "default_cards"


class CardCatalog:
    """
    Lookup of catalog printings backed by the ``cards`` table.

    Printings sharing an oracle id are reprints of the same card.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def lookup_by_oracle_id(self, oracle_id: str) -> list[CatalogCard]:
        """All printings of a card, oldest release first."""
        result = await self._session.execute(
            select(CardDB)
            .where(CardDB.oracle_id == oracle_id)
            .order_by(CardDB.released_at, CardDB.scryfall_id)
        )
        return [card_to_model(row) for row in result.scalars()]

    async def lookup_by_printing_id(self, printing_id: str) -> CatalogCard | None:
        row = await self._session.get(CardDB, printing_id)
        return card_to_model(row) if row is not None else None

    async def lookup_printings(self, printing_ids: Iterable[str]) -> dict[str, CatalogCard]:
        """
        Bulk lookup by printing id.

        Returns:
            Dict mapping printing id to card. Unknown ids are absent.
        """
        ids = sorted(set(printing_ids))
        if not ids:
            return {}
        result = await self._session.execute(select(CardDB).where(CardDB.scryfall_id.in_(ids)))
        return {row.scryfall_id: card_to_model(row) for row in result.scalars()}


def _parse_price(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def card_from_scryfall(data: dict[str, Any]) -> CatalogCard | None:
    """
    Build a catalog card from one Scryfall card object.

    Double-faced cards keep their oracle id and images on the first face.

    Returns:
        The card, or None if the object has no printing or oracle id.
    """
    faces = data.get("card_faces") or []
    front = faces[0] if faces else {}

    scryfall_id = data.get("id")
    oracle_id = data.get("oracle_id") or front.get("oracle_id")
    if not scryfall_id or not oracle_id:
        return None

    image_uris = data.get("image_uris") or front.get("image_uris") or {}
    prices = data.get("prices") or {}

    return CatalogCard(
        scryfall_id=scryfall_id,
        oracle_id=oracle_id,
        name=data.get("name", ""),
        set_code=(data.get("set") or "").upper(),
        set_name=data.get("set_name", ""),
        collector_number=data.get("collector_number"),
        image_uri=image_uris.get("normal"),
        image_uri_small=image_uris.get("small"),
        prices_usd=_parse_price(prices.get("usd")),
        prices_usd_foil=_parse_price(prices.get("usd_foil")),
        rarity=data.get("rarity"),
        type_line=data.get("type_line") or front.get("type_line"),
        mana_cost=data.get("mana_cost") or front.get("mana_cost"),
        colors=tuple(data.get("colors") or front.get("colors") or ()),
        color_identity=tuple(data.get("color_identity") or ()),
        cmc=data.get("cmc"),
        legalities=dict(data.get("legalities") or {}),
        released_at=data.get("released_at"),
    )


async def download_bulk_cards(output_path: Path | None = None) -> Path:
    """
    Download the latest Scryfall default-cards bulk data.

    Args:
        output_path: Where to save the file. Defaults to data/default-cards.json

    Returns:
        Path to downloaded file.

    Raises:
        ValueError: If bulk data URL not found
        httpx.HTTPError: If download fails
    """
    if output_path is None:
        output_path = DATA_DIR / "default-cards.json"

    output_path.parent.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.get(settings.scryfall_bulk_api)
        response.raise_for_status()
        data = response.json()

        download_url = None
        for item in data.get("data", []):
            if item.get("type") == BULK_TYPE:
                download_url = item.get("download_uri")
                break

        if not download_url:
            raise ValueError(f"Could not find {BULK_TYPE} bulk data URL")

        # Stream download (file is large)
        async with client.stream("GET", download_url, timeout=300.0) as response:
            response.raise_for_status()
            with open(output_path, "wb") as f:
                async for chunk in response.aiter_bytes(8192):
                    f.write(chunk)

    return output_path


def load_bulk_cards(path: Path) -> list[CatalogCard]:
    """
    Load catalog cards from a Scryfall bulk file.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    if not path.exists():
        raise FileNotFoundError(
            f"Card data not found at {path}. Run `cardswap-sync-catalog --download` first."
        )

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    cards: list[CatalogCard] = []
    for item in raw:
        card = card_from_scryfall(item)
        if card is not None:
            cards.append(card)
    return cards


async def upsert_catalog_cards(session: AsyncSession, cards: Sequence[CatalogCard]) -> int:
    """
    Insert or refresh catalog rows.

    Existing match lines keep their snapshots; only the catalog changes.

    Returns:
        Number of cards written.
    """
    for card in cards:
        await upsert_card(session, card)
    logger.info("Upserted %d catalog cards", len(cards))
    return len(cards)
