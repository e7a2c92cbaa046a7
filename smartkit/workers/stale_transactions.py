"""
Stale Transaction Worker

Fails transactions that have sat in "pending" longer than the configured age
without a poller tracking them (the process died mid-poll and recovery was
disabled, or a row was written by another deployment).

Designed to be run as a scheduled task (cron) or as a loop next to the API.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from smartkit.config import settings
from smartkit.core.execution.receipt_poller import ReceiptPoller, get_receipt_poller
from smartkit.db.store import TransactionStore, get_store

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Result from a cleanup run."""
    started_at: datetime
    cutoff: datetime
    cleaned: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "cutoff": self.cutoff.isoformat(),
            "cleaned": self.cleaned,
        }


class StaleTransactionWorker:
    def __init__(
        self,
        store: Optional[TransactionStore] = None,
        poller: Optional[ReceiptPoller] = None,
        max_age_seconds: Optional[int] = None,
    ):
        self._store = store or get_store()
        self._poller = poller or get_receipt_poller()
        self.max_age = timedelta(
            seconds=max_age_seconds or settings.stale_pending_max_age_seconds
        )

    async def run(self) -> CleanupResult:
        started_at = datetime.utcnow()
        cutoff = started_at - self.max_age
        cleaned = await self._store.mark_stale_transactions_failed(
            cutoff,
            exclude_hashes=self._poller.active_hashes,
        )
        if cleaned:
            logger.warning(f"Marked {cleaned} stale pending transactions as failed")
        return CleanupResult(started_at=started_at, cutoff=cutoff, cleaned=cleaned)


async def run_stale_transaction_loop(
    worker: Optional[StaleTransactionWorker] = None,
    interval_seconds: int = 600,
    max_iterations: Optional[int] = None,
):
    """
    Run the cleanup in a continuous loop.

    Args:
        worker: Worker to run (default: one bound to the singleton store)
        interval_seconds: Seconds between runs
        max_iterations: Max iterations (None for infinite)
    """
    worker = worker or StaleTransactionWorker()

    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        try:
            await worker.run()
        except Exception as e:
            logger.error(f"Stale transaction cleanup {iterations + 1} failed: {e}")

        iterations += 1

        if max_iterations is None or iterations < max_iterations:
            await asyncio.sleep(interval_seconds)
