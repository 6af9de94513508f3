"""Revue des correspondances et application des images."""

from menuimport.review.apply import DirectoryStore, apply_row
from menuimport.review.session import BulkApplyBlocked, DuplicateFileError, ImportSession
from menuimport.review.state import (
    ApplyResult,
    Effect,
    ImportRow,
    RowStatus,
    Transition,
    TransitionError,
    conflict_groups,
    next_unresolved,
    ready_rows,
    sorted_for_review,
    transition,
    unresolved_rows,
)

__all__ = [
    "ApplyResult",
    "BulkApplyBlocked",
    "DirectoryStore",
    "DuplicateFileError",
    "Effect",
    "ImportRow",
    "ImportSession",
    "RowStatus",
    "Transition",
    "TransitionError",
    "apply_row",
    "conflict_groups",
    "next_unresolved",
    "ready_rows",
    "sorted_for_review",
    "transition",
    "unresolved_rows",
]
