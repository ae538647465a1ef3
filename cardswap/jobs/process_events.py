"""
Drain the inventory-changed outbox.

Recomputes matches for every user with pending inventory events. Meant to
run on a schedule.
"""

import asyncio
import logging

from cardswap.db.database import async_session_factory
from cardswap.services.inventory_events import ProcessingReport, process_inventory_events
from cardswap.services.notifications import drain_pushes

logger = logging.getLogger(__name__)


async def run_process_events(limit: int = 500) -> ProcessingReport:
    async with async_session_factory() as session:
        report = await process_inventory_events(session, limit=limit)
    await drain_pushes()
    logger.info(
        "Outbox drained: %d done, %d skipped, %d failed, %d retrying",
        report.events_done,
        report.events_skipped,
        report.events_failed,
        report.events_retrying,
    )
    return report


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_process_events())


if __name__ == "__main__":
    main()
