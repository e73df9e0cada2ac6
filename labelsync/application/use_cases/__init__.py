"""Use cases: one module per operator-facing operation."""

from .reconcile_label import (
    ReconcileLabelCommand,
    ReconcileLabelUseCase,
    run_reconcile,
)
from .sync_label import SyncLabelCommand, SyncLabelUseCase, run_sync

__all__ = [
    "ReconcileLabelCommand",
    "ReconcileLabelUseCase",
    "SyncLabelCommand",
    "SyncLabelUseCase",
    "run_reconcile",
    "run_sync",
]
