"""
Sync the card catalog from Scryfall bulk data.

Downloads the default-cards bulk file (with ``--download``) and upserts
every printing into the ``cards`` table.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from cardswap.db.database import async_session_factory, init_db
from cardswap.services.card_catalog import (
    DATA_DIR,
    download_bulk_cards,
    load_bulk_cards,
    upsert_catalog_cards,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


async def run_sync(path: Path, download: bool = False) -> int:
    """
    Load the bulk file at ``path`` into the catalog.

    Returns:
        Number of cards written
    """
    if download:
        logger.info("Downloading Scryfall bulk data...")
        try:
            path = await download_bulk_cards(path)
        except Exception as e:
            logger.error("Failed to download bulk data: %s", e)
            raise
        logger.info("Downloaded bulk data to %s", path)

    cards = load_bulk_cards(path)
    logger.info("Loaded %d printings from %s", len(cards), path)

    await init_db()
    total = 0
    for start in range(0, len(cards), BATCH_SIZE):
        async with async_session_factory() as session:
            total += await upsert_catalog_cards(session, cards[start : start + BATCH_SIZE])
            await session.commit()

    logger.info("Catalog sync complete. %d cards written", total)
    return total


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Sync the card catalog from Scryfall")
    parser.add_argument(
        "--download",
        action="store_true",
        help="Fetch a fresh bulk file before loading",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=DATA_DIR / "default-cards.json",
        help="Bulk file location (default: cardswap/data/default-cards.json)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_sync(args.path, download=args.download))


if __name__ == "__main__":
    main()
