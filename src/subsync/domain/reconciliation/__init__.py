"""Reconciliation of vendor data into locally stored subscriptions."""

from __future__ import annotations

from .contracts import (
    CommitSummary,
    CycleResult,
    InvalidRecord,
    IsolationMode,
    MergeResult,
    SyncMode,
)
from .controller import ConsistencyController
from .engine import ReconciliationEngine
from .refresh import BackgroundRefresher, RefreshOutcome

__all__ = [
    "BackgroundRefresher",
    "CommitSummary",
    "ConsistencyController",
    "CycleResult",
    "InvalidRecord",
    "IsolationMode",
    "MergeResult",
    "ReconciliationEngine",
    "RefreshOutcome",
    "SyncMode",
]
