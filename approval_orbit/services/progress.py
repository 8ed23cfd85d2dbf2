"""Stage progress status derivation.

The current stage and overall status of an asset are never stored; they are
derived from its StageProgress rows on every read.
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..models import OverallStatus, StageStatus


class _ProgressRow(Protocol):
    stage_order: int
    status: StageStatus


@dataclass(frozen=True)
class DerivedProgress:
    current_stage: int
    overall_status: OverallStatus


def derive_progress_status(progress_rows: Iterable[_ProgressRow]) -> DerivedProgress:
    """Derive ``current_stage`` and ``overall_status`` from progress rows.

    - current_stage: the in_review stage, else the highest approved stage,
      else 1.
    - overall_status: changes_requested if any stage requested changes, else
      approved if every stage is approved, else in_progress if a stage is in
      review, else not_started.
    """
    rows = list(progress_rows)
    statuses = [StageStatus(r.status) for r in rows]

    in_review = next(
        (r.stage_order for r, s in zip(rows, statuses) if s == StageStatus.IN_REVIEW),
        None,
    )
    if in_review is not None:
        current_stage = in_review
    else:
        approved_orders = [
            r.stage_order for r, s in zip(rows, statuses) if s == StageStatus.APPROVED
        ]
        current_stage = max(approved_orders) if approved_orders else 1

    if StageStatus.CHANGES_REQUESTED in statuses:
        overall = OverallStatus.CHANGES_REQUESTED
    elif statuses and all(s == StageStatus.APPROVED for s in statuses):
        overall = OverallStatus.APPROVED
    elif StageStatus.IN_REVIEW in statuses:
        overall = OverallStatus.IN_PROGRESS
    else:
        overall = OverallStatus.NOT_STARTED

    return DerivedProgress(current_stage=current_stage, overall_status=overall)
