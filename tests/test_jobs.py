"""Tests for scheduled jobs."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from cardswap.jobs.process_events import run_process_events
from cardswap.jobs.sync_catalog import run_sync
from cardswap.services.inventory_events import ProcessingReport


@pytest.fixture
def mock_session() -> AsyncMock:
    session = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.commit = AsyncMock()
    return session


@pytest.fixture
def bulk_file(tmp_path: Path) -> Path:
    path = tmp_path / "default-cards.json"
    cards = [
        {"id": f"p{i}", "oracle_id": f"o{i}", "name": f"Card {i}", "set": "tst"} for i in range(3)
    ]
    path.write_text(json.dumps(cards), encoding="utf-8")
    return path


class TestRunSync:
    async def test_upserts_in_batches(self, bulk_file: Path, mock_session: AsyncMock) -> None:
        """Each batch is written and committed in its own session."""
        with (
            patch("cardswap.jobs.sync_catalog.init_db", new_callable=AsyncMock),
            patch("cardswap.jobs.sync_catalog.BATCH_SIZE", 2),
            patch(
                "cardswap.jobs.sync_catalog.async_session_factory",
                return_value=mock_session,
            ),
            patch(
                "cardswap.jobs.sync_catalog.upsert_catalog_cards",
                new_callable=AsyncMock,
                side_effect=lambda _session, cards: len(cards),
            ) as upsert,
        ):
            total = await run_sync(bulk_file)

        assert total == 3
        assert [len(c.args[1]) for c in upsert.await_args_list] == [2, 1]
        assert mock_session.commit.await_count == 2

    async def test_downloads_first(self, bulk_file: Path, mock_session: AsyncMock) -> None:
        with (
            patch("cardswap.jobs.sync_catalog.init_db", new_callable=AsyncMock),
            patch(
                "cardswap.jobs.sync_catalog.download_bulk_cards",
                new_callable=AsyncMock,
                return_value=bulk_file,
            ) as download,
            patch(
                "cardswap.jobs.sync_catalog.async_session_factory",
                return_value=mock_session,
            ),
            patch(
                "cardswap.jobs.sync_catalog.upsert_catalog_cards",
                new_callable=AsyncMock,
                return_value=3,
            ),
        ):
            total = await run_sync(bulk_file, download=True)

        download.assert_awaited_once_with(bulk_file)
        assert total == 3

    async def test_download_failure_propagates(self, tmp_path: Path) -> None:
        with (
            patch(
                "cardswap.jobs.sync_catalog.download_bulk_cards",
                new_callable=AsyncMock,
                side_effect=httpx.HTTPError("Network error"),
            ),
            pytest.raises(httpx.HTTPError),
        ):
            await run_sync(tmp_path / "cards.json", download=True)

    async def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await run_sync(tmp_path / "cards.json")


class TestRunProcessEvents:
    async def test_drains_outbox(self, mock_session: AsyncMock) -> None:
        report = ProcessingReport(users_processed=2, events_done=3)

        with (
            patch(
                "cardswap.jobs.process_events.async_session_factory",
                return_value=mock_session,
            ),
            patch(
                "cardswap.jobs.process_events.process_inventory_events",
                new_callable=AsyncMock,
                return_value=report,
            ) as process,
            patch(
                "cardswap.jobs.process_events.drain_pushes", new_callable=AsyncMock
            ) as drain,
        ):
            result = await run_process_events(limit=50)

        assert result is report
        process.assert_awaited_once_with(mock_session, limit=50)
        drain.assert_awaited_once()
