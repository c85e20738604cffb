"""Offline repair of the session ledger.

Absence-based closing means a single garbled poll closes and reopens a
session, and restarts or racing writers can insert the same session twice.
Two interchangeable policies fold such rows back together:

- exact: rows sharing (server, player, started_at) are duplicates; keep one,
  delete the rest, no field merging.
- cluster: rows of one (server, player) ordered by started_at are grouped
  while each start falls within ``merge_gap_ms`` of the running end of the
  group; each multi-row cluster is collapsed into its keeper row.

Every group is flushed in its own transaction under the server lock, so an
interrupted run never leaves a group half-merged. A failing group is logged
and skipped; the run goes on. Running either policy on its own output is a
no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from servertracker.core.config import settings
from servertracker.core.errors import InvalidInputError, NoKeeperCandidate
from servertracker.crud import player_session as crud_player_session
from servertracker.db.session import AsyncSessionLocal
from servertracker.schemas.consolidation import ConsolidationSummary
from servertracker.services.locks import server_lock

logger = logging.getLogger("tracker.consolidation")


# ---------------------------------------------------------------------------
# Keeper selection
# ---------------------------------------------------------------------------


def _exact_rank(row: Any) -> tuple:
    # open > closed, later close, later last_seen, then lowest id
    ended = -1 if row.ended_at is None else row.ended_at
    return (row.ended_at is None, ended, row.last_seen_at, -row.id)


def choose_exact_keeper(rows: Sequence[Any]) -> Any:
    if not rows:
        raise NoKeeperCandidate("No sessions to choose a keeper from")
    return max(rows, key=_exact_rank)


def _cluster_rank(row: Any) -> tuple:
    # has steam id > lacks one, later last_seen, then lowest id
    return (row.steam_id is not None, row.last_seen_at, -row.id)


def choose_cluster_keeper(rows: Sequence[Any]) -> Any:
    if not rows:
        raise NoKeeperCandidate("No sessions to choose a keeper from")
    return max(rows, key=_cluster_rank)


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


def effective_end(row: Any) -> int:
    end = row.last_seen_at if row.ended_at is None else row.ended_at
    return max(end, row.last_seen_at)


def cluster_sessions(rows: Sequence[Any], merge_gap_ms: int) -> List[List[Any]]:
    """
    Split one player's rows into clusters of time-adjacent sessions.

    ``rows`` must be ordered by (started_at, id).
    """
    clusters: List[List[Any]] = []
    current: List[Any] = []
    current_end: Optional[int] = None

    for row in rows:
        if current and row.started_at <= current_end + merge_gap_ms:
            current.append(row)
            current_end = max(current_end, effective_end(row))
            continue
        if current:
            clusters.append(current)
        current = [row]
        current_end = effective_end(row)

    if current:
        clusters.append(current)
    return clusters


@dataclass(frozen=True)
class ClusterMerge:
    keeper_id: int
    started_at: int
    last_seen_at: int
    ended_at: Optional[int]
    steam_id: Optional[str]
    delete_ids: List[int]


def merge_cluster(rows: Sequence[Any]) -> ClusterMerge:
    keeper = choose_cluster_keeper(rows)

    if any(row.ended_at is None for row in rows):
        ended_at = None
    else:
        ended_at = max(max(row.ended_at, row.last_seen_at) for row in rows)

    steam_id = keeper.steam_id
    if steam_id is None:
        steam_id = next((row.steam_id for row in rows if row.steam_id is not None), None)

    return ClusterMerge(
        keeper_id=keeper.id,
        started_at=min(row.started_at for row in rows),
        last_seen_at=max(row.last_seen_at for row in rows),
        ended_at=ended_at,
        steam_id=steam_id,
        delete_ids=[row.id for row in rows if row.id != keeper.id],
    )


def _apply_merge(keeper: Any, merge: ClusterMerge) -> bool:
    """Write merged fields onto the keeper row; returns True if anything changed."""
    changed = False
    for attr in ("started_at", "last_seen_at", "ended_at"):
        value = getattr(merge, attr)
        if getattr(keeper, attr) != value:
            setattr(keeper, attr, value)
            changed = True
    # steam id is only back-filled
    if keeper.steam_id is None and merge.steam_id is not None:
        keeper.steam_id = merge.steam_id
        changed = True
    return changed


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


async def consolidate_exact_duplicates(
    *,
    session_factory=AsyncSessionLocal,
    dry_run: bool = False,
) -> ConsolidationSummary:
    """Policy "exact": dedupe rows sharing (server, player, started_at)."""
    summary = ConsolidationSummary(policy="exact", dry_run=dry_run)

    async with session_factory() as db:
        groups = await crud_player_session.list_exact_duplicate_groups(db)
    summary.groups_examined = len(groups)
    logger.info("Exact duplicate pass: %s candidate groups (dry_run=%s)", len(groups), dry_run)

    for group in groups:
        try:
            async with server_lock(group[:3]):
                # uncommitted work is rolled back when the session closes
                async with session_factory() as db:
                    rows = await crud_player_session.list_exact_duplicates(db, group)
                    if len(rows) <= 1:
                        continue
                    keeper = choose_exact_keeper(rows)
                    delete_ids = [row.id for row in rows if row.id != keeper.id]
                    if not dry_run:
                        await crud_player_session.delete_ids(db, delete_ids)
                        await db.commit()
        except Exception:
            summary.failed += 1
            logger.exception("Skipping exact duplicate group %s", group)
            continue

        summary.merged += 1
        summary.deleted += len(delete_ids)

    logger.info(
        "Exact duplicate pass done (groups=%s merged=%s deleted=%s failed=%s dry_run=%s)",
        summary.groups_examined,
        summary.merged,
        summary.deleted,
        summary.failed,
        dry_run,
    )
    return summary


async def consolidate_session_clusters(
    *,
    session_factory=AsyncSessionLocal,
    merge_gap_ms: int | None = None,
    dry_run: bool = False,
) -> ConsolidationSummary:
    """Policy "cluster": merge time-adjacent sessions of the same player."""
    if merge_gap_ms is None:
        merge_gap_ms = settings.SESSION_MERGE_GAP_MS
    if isinstance(merge_gap_ms, bool) or not isinstance(merge_gap_ms, int) or merge_gap_ms < 0:
        raise InvalidInputError(f"merge_gap_ms must be a non-negative integer, got {merge_gap_ms!r}")

    summary = ConsolidationSummary(policy="cluster", dry_run=dry_run)

    async with session_factory() as db:
        groups = await crud_player_session.list_multi_session_players(db)
    summary.groups_examined = len(groups)
    logger.info(
        "Cluster merge pass: %s candidate players (merge_gap_ms=%s dry_run=%s)",
        len(groups),
        merge_gap_ms,
        dry_run,
    )

    for group in groups:
        merged = updated = deleted = 0
        try:
            async with server_lock(group[:3]):
                async with session_factory() as db:
                    rows = await crud_player_session.list_player_sessions(db, group)
                    rows_by_id: Dict[int, Any] = {row.id: row for row in rows}

                    for cluster in cluster_sessions(rows, merge_gap_ms):
                        if len(cluster) <= 1:
                            continue
                        merge = merge_cluster(cluster)
                        merged += 1
                        deleted += len(merge.delete_ids)
                        if _apply_merge(rows_by_id[merge.keeper_id], merge):
                            updated += 1
                        if not dry_run:
                            await crud_player_session.delete_ids(db, merge.delete_ids)

                    if not dry_run:
                        await db.commit()
        except Exception:
            summary.failed += 1
            logger.exception("Skipping session cluster group %s", group)
            continue

        summary.merged += merged
        summary.updated += updated
        summary.deleted += deleted

    logger.info(
        "Cluster merge pass done (players=%s merged=%s updated=%s deleted=%s failed=%s dry_run=%s)",
        summary.groups_examined,
        summary.merged,
        summary.updated,
        summary.deleted,
        summary.failed,
        dry_run,
    )
    return summary
