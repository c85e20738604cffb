# servertracker/api/routes/maintenance.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from servertracker.api.deps import get_session_factory, require_admin
from servertracker.schemas import ConsolidationSummary
from servertracker.services.consolidation import (
    consolidate_exact_duplicates,
    consolidate_session_clusters,
)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/sessions/dedupe-exact", response_model=ConsolidationSummary)
async def dedupe_exact_sessions(
    dry_run: bool = Query(default=False),
    session_factory=Depends(get_session_factory),
):
    return await consolidate_exact_duplicates(
        session_factory=session_factory,
        dry_run=dry_run,
    )


@router.post("/sessions/merge-clusters", response_model=ConsolidationSummary)
async def merge_session_clusters(
    dry_run: bool = Query(default=False),
    merge_gap_ms: Optional[int] = Query(default=None),
    session_factory=Depends(get_session_factory),
):
    """
    Junta sessões do mesmo jogador separadas por menos de merge_gap_ms
    (default SESSION_MERGE_GAP_MS). merge_gap_ms negativo -> 400.
    """
    return await consolidate_session_clusters(
        session_factory=session_factory,
        merge_gap_ms=merge_gap_ms,
        dry_run=dry_run,
    )
