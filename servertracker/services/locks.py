"""Per-server mutual exclusion for ledger writers.

A poll and a consolidation group flush for the same server must never
interleave; polls for different servers run in parallel. This only covers
writers inside one process, which is the deployment model.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Tuple

ServerKey = Tuple[str, str, int]

_locks: Dict[ServerKey, asyncio.Lock] = {}


def server_lock(key: ServerKey) -> asyncio.Lock:
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    return lock
