from types import SimpleNamespace

import pytest
from sqlalchemy import select

from servertracker.core.errors import NoKeeperCandidate
from servertracker.db.session import AsyncSessionLocal
from servertracker.models.player_session import PlayerSession
from servertracker.models.server import GameServer
from servertracker.services import consolidation
from servertracker.services.consolidation import (
    choose_exact_keeper,
    consolidate_exact_duplicates,
)

pytestmark = pytest.mark.usefixtures("reset_db")


async def seed(*rows, host="10.0.0.5"):
    """rows: (player_name, started_at, last_seen_at, ended_at)"""
    async with AsyncSessionLocal() as db:
        if await db.get(GameServer, ("rust", host, 28017)) is None:
            db.add(GameServer(server_type="rust", host=host, port=28017, last_seen_at=0))
            await db.flush()
        for name, started, last_seen, ended in rows:
            db.add(
                PlayerSession(
                    server_type="rust",
                    host=host,
                    port=28017,
                    player_name=name,
                    started_at=started,
                    last_seen_at=last_seen,
                    ended_at=ended,
                )
            )
        await db.commit()


async def remaining():
    async with AsyncSessionLocal() as db:
        res = await db.execute(select(PlayerSession).order_by(PlayerSession.id))
        return [(s.id, s.player_name, s.started_at, s.last_seen_at, s.ended_at) for s in res.scalars()]


@pytest.mark.asyncio
async def test_open_row_is_keeper_regardless_of_insertion_order():
    await seed(
        ("Alice", 1000, 5000, 6000),  # id 1, closed
        ("Alice", 1000, 2000, None),  # id 2, open
        ("Bob", 1000, 2000, None),  # id 3, open
        ("Bob", 1000, 9000, 9500),  # id 4, closed
    )

    summary = await consolidate_exact_duplicates()

    assert summary.groups_examined == 2
    assert summary.merged == 2
    assert summary.deleted == 2
    assert summary.updated == 0
    assert await remaining() == [
        (2, "Alice", 1000, 2000, None),
        (3, "Bob", 1000, 2000, None),
    ]


@pytest.mark.asyncio
async def test_closed_rows_compare_end_then_last_seen_then_id():
    await seed(
        ("Alice", 1000, 3000, 4000),  # id 1
        ("Alice", 1000, 3000, 5000),  # id 2 <- later close
        ("Bob", 1000, 3000, 4000),  # id 3
        ("Bob", 1000, 3500, 4000),  # id 4 <- later last_seen
        ("Carol", 1000, 3000, 4000),  # id 5 <- lowest id
        ("Carol", 1000, 3000, 4000),  # id 6
    )

    await consolidate_exact_duplicates()

    assert [row[0] for row in await remaining()] == [2, 4, 5]


@pytest.mark.asyncio
async def test_exact_dedupe_is_idempotent_and_ignores_other_start_times():
    await seed(
        ("Alice", 1000, 2000, 2000),
        ("Alice", 1000, 2000, 2000),
        ("Alice", 3000, 4000, None),
    )
    await seed(("Alice", 1000, 2000, 2000), host="10.0.0.6")

    first = await consolidate_exact_duplicates()
    second = await consolidate_exact_duplicates()

    assert first.deleted == 1
    assert second.groups_examined == 0
    assert second.merged == 0
    assert second.deleted == 0
    assert len(await remaining()) == 3


@pytest.mark.asyncio
async def test_exact_dry_run_reports_without_deleting():
    await seed(
        ("Alice", 1000, 2000, None),
        ("Alice", 1000, 2000, 2500),
        ("Alice", 1000, 1500, 1500),
    )

    summary = await consolidate_exact_duplicates(dry_run=True)

    assert summary.dry_run is True
    assert summary.merged == 1
    assert summary.deleted == 2
    assert len(await remaining()) == 3


@pytest.mark.asyncio
async def test_failing_group_is_skipped_and_counted(monkeypatch):
    await seed(
        ("Alice", 1000, 2000, None),
        ("Alice", 1000, 2000, 2500),
    )

    def no_keeper(rows):
        raise NoKeeperCandidate("nothing to keep")

    monkeypatch.setattr(consolidation, "choose_exact_keeper", no_keeper)

    summary = await consolidate_exact_duplicates()

    assert summary.failed == 1
    assert summary.deleted == 0
    assert len(await remaining()) == 2


def test_choose_exact_keeper_rejects_empty_group():
    with pytest.raises(NoKeeperCandidate):
        choose_exact_keeper([])


def test_choose_exact_keeper_prefers_open_row():
    rows = [
        SimpleNamespace(id=1, ended_at=99999, last_seen_at=99999),
        SimpleNamespace(id=7, ended_at=None, last_seen_at=10),
    ]
    assert choose_exact_keeper(rows).id == 7
