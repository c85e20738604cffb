# servertracker/schemas/consolidation.py
from typing import Literal

from pydantic import BaseModel


class ConsolidationSummary(BaseModel):
    policy: Literal["exact", "cluster"]
    dry_run: bool = False
    groups_examined: int = 0
    merged: int = 0
    updated: int = 0
    deleted: int = 0
    # groups skipped after an error (logged)
    failed: int = 0
