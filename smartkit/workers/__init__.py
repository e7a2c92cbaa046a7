"""
Background Workers

Workers for scheduled and background tasks.
"""

from .stale_transactions import (
    CleanupResult,
    StaleTransactionWorker,
    run_stale_transaction_loop,
)

__all__ = [
    "CleanupResult",
    "StaleTransactionWorker",
    "run_stale_transaction_loop",
]
