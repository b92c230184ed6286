"""
Sync module: generation, reconciliation and apply.

This module provides:
- GenerationRunner: per-record note generation with a time budget
- reconcile: diff of generated notes against the previous status
- OperationApplier: execution of a plan against a vault sink
"""

from .canonical import compute_content_hash, inject_marker
from .generation import GenerationResult, GenerationRunner
from .reconciler import PathCollision, ReconcilePlan, reconcile
from .applier import ApplyResult, OperationApplier

__all__ = [
    "compute_content_hash",
    "inject_marker",
    "GenerationResult",
    "GenerationRunner",
    "PathCollision",
    "ReconcilePlan",
    "reconcile",
    "ApplyResult",
    "OperationApplier",
]
