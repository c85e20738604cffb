import asyncio
from collections import Counter
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from servertracker.core.errors import InvalidInputError
from servertracker.crud import player_session as crud_player_session
from servertracker.db.session import AsyncSessionLocal
from servertracker.models.player_session import PlayerSession
from servertracker.models.server import GameServer
from servertracker.schemas import ObservedPlayer, PollSnapshot, ServerIdentity
from servertracker.services.consolidation import (
    cluster_sessions,
    consolidate_session_clusters,
    merge_cluster,
)
from servertracker.services.locks import server_lock
from servertracker.services.session_ledger import ingest_poll

SERVER = ServerIdentity(type="rust", host="10.0.0.5", port=28017)

pytestmark = pytest.mark.usefixtures("reset_db")


async def seed(*rows, host="10.0.0.5"):
    """rows: (player_name, started_at, last_seen_at, ended_at[, steam_id])"""
    async with AsyncSessionLocal() as db:
        if await db.get(GameServer, ("rust", host, 28017)) is None:
            db.add(GameServer(server_type="rust", host=host, port=28017, last_seen_at=0))
            await db.flush()
        for name, started, last_seen, ended, *steam in rows:
            db.add(
                PlayerSession(
                    server_type="rust",
                    host=host,
                    port=28017,
                    player_name=name,
                    started_at=started,
                    last_seen_at=last_seen,
                    ended_at=ended,
                    steam_id=steam[0] if steam else None,
                )
            )
        await db.commit()


async def remaining():
    async with AsyncSessionLocal() as db:
        res = await db.execute(select(PlayerSession).order_by(PlayerSession.id))
        return [
            (s.id, s.host, s.player_name, s.started_at, s.last_seen_at, s.ended_at, s.steam_id)
            for s in res.scalars()
        ]


@pytest.mark.asyncio
async def test_adjacent_sessions_merge_into_open_row():
    await seed(
        ("Alice", 0, 1000, 2000),
        ("Alice", 4000, 9000, None),
    )

    summary = await consolidate_session_clusters(merge_gap_ms=5000)

    assert summary.merged == 1
    assert summary.deleted == 1
    assert summary.updated == 1
    assert await remaining() == [(2, "10.0.0.5", "Alice", 0, 9000, None, None)]


@pytest.mark.asyncio
async def test_sessions_further_apart_than_gap_are_kept():
    await seed(
        ("Alice", 0, 1000, 2000),
        ("Alice", 4000, 9000, None),
    )

    summary = await consolidate_session_clusters(merge_gap_ms=1000)

    assert summary.groups_examined == 1
    assert summary.merged == 0
    assert summary.deleted == 0
    assert len(await remaining()) == 2


@pytest.mark.asyncio
async def test_cluster_merge_is_idempotent():
    await seed(
        ("Alice", 0, 1000, 2000),
        ("Alice", 3000, 4000, 4000),
        ("Alice", 60_000, 61_000, None),
    )

    first = await consolidate_session_clusters(merge_gap_ms=5000)
    after_first = await remaining()
    second = await consolidate_session_clusters(merge_gap_ms=5000)

    assert first.merged == 1
    assert first.deleted == 1
    assert second.merged == 0
    assert second.deleted == 0
    assert second.updated == 0
    assert await remaining() == after_first
    assert [(r[3], r[5]) for r in after_first] == [(0, 4000), (60_000, None)]


@pytest.mark.asyncio
async def test_cluster_dry_run_leaves_rows_untouched():
    await seed(
        ("Alice", 0, 1000, 2000),
        ("Alice", 4000, 9000, None),
    )
    before = await remaining()

    summary = await consolidate_session_clusters(merge_gap_ms=5000, dry_run=True)

    assert summary.dry_run is True
    assert summary.merged == 1
    assert summary.deleted == 1
    assert await remaining() == before


@pytest.mark.asyncio
async def test_keeper_prefers_row_with_steam_id():
    await seed(
        ("Alice", 0, 1000, 1000, "76561198000000001"),
        ("Alice", 2000, 9000, 9000),
    )

    await consolidate_session_clusters(merge_gap_ms=5000)

    assert await remaining() == [(1, "10.0.0.5", "Alice", 0, 9000, 9000, "76561198000000001")]


@pytest.mark.asyncio
async def test_only_same_player_on_same_server_is_merged():
    await seed(
        ("Alice", 0, 1000, 1000),
        ("Bob", 1500, 2000, 2000),
    )
    await seed(("Alice", 1500, 2000, 2000), host="10.0.0.6")

    summary = await consolidate_session_clusters(merge_gap_ms=5000)

    assert summary.groups_examined == 0
    assert len(await remaining()) == 3


@pytest.mark.asyncio
async def test_negative_gap_is_rejected():
    with pytest.raises(InvalidInputError):
        await consolidate_session_clusters(merge_gap_ms=-1)


def _row(id, started, last_seen, ended=None, steam_id=None):
    return SimpleNamespace(
        id=id, started_at=started, last_seen_at=last_seen, ended_at=ended, steam_id=steam_id
    )


def test_cluster_sessions_chains_through_running_end():
    rows = [
        _row(1, 0, 1000, 1000),
        _row(2, 500, 8000, 8000),  # overlaps and extends the end
        _row(3, 9000, 9500, 9500),  # within 1000 of 8000
        _row(4, 20_000, 21_000, None),
    ]

    clusters = cluster_sessions(rows, 1000)

    assert [[r.id for r in c] for c in clusters] == [[1, 2, 3], [4]]


def test_cluster_sessions_with_zero_gap_only_joins_touching_rows():
    rows = [_row(1, 0, 1000, 1000), _row(2, 1000, 2000, 2000), _row(3, 2001, 3000, 3000)]

    clusters = cluster_sessions(rows, 0)

    assert [[r.id for r in c] for c in clusters] == [[1, 2], [3]]


def test_merge_cluster_of_closed_rows_ends_at_latest_close():
    merge = merge_cluster([_row(1, 0, 1000, 1200), _row(2, 1100, 1500, 1600, "7656")])

    assert merge.keeper_id == 2
    assert merge.started_at == 0
    assert merge.last_seen_at == 1500
    assert merge.ended_at == 1600
    assert merge.steam_id == "7656"
    assert merge.delete_ids == [1]


# -------------------------------------------------------------------
# concorrência com o ledger
# -------------------------------------------------------------------


def open_per_name(rows):
    return Counter((r[1], r[2]) for r in rows if r[5] is None)


async def poll(timestamp, *names):
    players = [ObservedPlayer(name=n) for n in names]
    return await ingest_poll(PollSnapshot(server=SERVER, players=players, queried_at=timestamp))


@pytest.mark.asyncio
async def test_cluster_merge_alongside_polls_on_same_server():
    await seed(
        ("Alice", 0, 1000, 1000),
        ("Alice", 2000, 3000, None),
    )

    summary, *_ = await asyncio.gather(
        consolidate_session_clusters(merge_gap_ms=5000),
        *(poll(200_000 + 1000 * i, "Alice", "Bob") for i in range(10)),
    )

    assert summary.failed == 0
    rows = await remaining()
    counts = open_per_name(rows)
    assert counts == {("10.0.0.5", "Alice"): 1, ("10.0.0.5", "Bob"): 1}
    assert max(r[4] for r in rows if r[2] == "Alice") == 209_000


@pytest.mark.asyncio
async def test_cluster_merge_waits_for_server_lock():
    await seed(
        ("Alice", 0, 1000, 1000),
        ("Alice", 2000, 3000, None),
    )

    async with server_lock(SERVER.key()):
        task = asyncio.create_task(consolidate_session_clusters(merge_gap_ms=5000))
        await asyncio.sleep(0.05)
        assert not task.done()
        assert len(await remaining()) == 2

    summary = await task
    assert summary.merged == 1
    assert len(await remaining()) == 1


# -------------------------------------------------------------------
# interrupção entre grupos
# -------------------------------------------------------------------


async def seed_two_players():
    await seed(
        ("Alice", 0, 1000, 1000),  # id 1
        ("Alice", 2000, 3000, None),  # id 2
        ("Bob", 0, 1000, 1000),  # id 3
        ("Bob", 2000, 3000, 3000),  # id 4
        ("Bob", 100_000, 101_000, 101_000),  # id 5
        ("Bob", 102_000, 103_000, None),  # id 6
    )


def fail_on_delete_call(monkeypatch, call_number, exc):
    """Apaga normalmente e levanta exc logo depois da chamada call_number."""
    original = crud_player_session.delete_ids
    calls = []

    async def delete_ids(db, ids):
        calls.append(list(ids))
        deleted = await original(db, ids)
        if len(calls) == call_number:
            raise exc
        return deleted

    monkeypatch.setattr(crud_player_session, "delete_ids", delete_ids)
    return calls


@pytest.mark.asyncio
async def test_cancel_mid_group_keeps_finished_groups_and_rolls_back_current(monkeypatch):
    await seed_two_players()
    bob_before = [r for r in await remaining() if r[2] == "Bob"]
    # Alice: 1 delete; Bob: 2 clusters -> cancela depois do segundo delete de Bob
    calls = fail_on_delete_call(monkeypatch, 3, asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await consolidate_session_clusters(merge_gap_ms=5000)

    assert calls == [[1], [3], [5]]
    rows = await remaining()
    assert [r for r in rows if r[2] == "Alice"] == [(2, "10.0.0.5", "Alice", 0, 3000, None, None)]
    assert [r for r in rows if r[2] == "Bob"] == bob_before

    monkeypatch.undo()
    rerun = await consolidate_session_clusters(merge_gap_ms=5000)

    assert rerun.failed == 0
    assert rerun.merged == 2
    assert [(r[0], r[3], r[5]) for r in await remaining() if r[2] == "Bob"] == [
        (4, 0, 3000),
        (6, 100_000, None),
    ]


@pytest.mark.asyncio
async def test_error_mid_group_skips_group_without_partial_deletes(monkeypatch):
    await seed_two_players()
    bob_before = [r for r in await remaining() if r[2] == "Bob"]
    fail_on_delete_call(monkeypatch, 3, RuntimeError("disk full"))

    summary = await consolidate_session_clusters(merge_gap_ms=5000)

    assert summary.failed == 1
    assert summary.merged == 1
    assert summary.deleted == 1
    rows = await remaining()
    assert [r[0] for r in rows if r[2] == "Alice"] == [2]
    assert [r for r in rows if r[2] == "Bob"] == bob_before
