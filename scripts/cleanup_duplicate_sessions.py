# scripts/cleanup_duplicate_sessions.py
import argparse
import asyncio
import json

from servertracker.core.config import settings
from servertracker.core.logging import configure_logging
from servertracker.db.session import init_db
from servertracker.schemas import ConsolidationSummary
from servertracker.services.consolidation import (
    consolidate_exact_duplicates,
    consolidate_session_clusters,
)


async def run(*, policy: str, dry_run: bool, merge_gap_ms: int) -> ConsolidationSummary:
    await init_db()
    if policy == "exact":
        return await consolidate_exact_duplicates(dry_run=dry_run)
    return await consolidate_session_clusters(merge_gap_ms=merge_gap_ms, dry_run=dry_run)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Repair duplicate or split player sessions. Stop polling before running it.",
    )
    parser.add_argument(
        "--policy",
        choices=("exact", "cluster"),
        default="exact",
        help="exact: same start timestamp; cluster: sessions separated by at most --merge-gap-ms.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be merged/deleted without changing the database.",
    )
    parser.add_argument(
        "--merge-gap-ms",
        type=int,
        default=settings.SESSION_MERGE_GAP_MS,
        help="Maximum gap between two sessions of the same player (cluster policy).",
    )
    args = parser.parse_args(argv)
    if args.merge_gap_ms < 0:
        parser.error("--merge-gap-ms must be non-negative")
    return args


def main(argv=None) -> None:
    args = parse_args(argv)
    configure_logging()
    summary = asyncio.run(
        run(policy=args.policy, dry_run=args.dry_run, merge_gap_ms=args.merge_gap_ms)
    )
    print(json.dumps({"action": "cleanup-duplicate-sessions", **summary.model_dump()}, indent=2))


if __name__ == "__main__":
    main()
