"""Tests for current-stage and overall-status derivation."""

from types import SimpleNamespace

import pytest

from approval_orbit.models import OverallStatus, StageStatus
from approval_orbit.services.progress import derive_progress_status


def rows(*statuses: StageStatus):
    return [SimpleNamespace(stage_order=i + 1, status=s) for i, s in enumerate(statuses)]


class TestCurrentStage:
    def test_in_review_stage_is_current(self):
        result = derive_progress_status(
            rows(StageStatus.APPROVED, StageStatus.IN_REVIEW, StageStatus.NOT_STARTED)
        )
        assert result.current_stage == 2

    def test_highest_approved_stage_when_nothing_in_review(self):
        result = derive_progress_status(
            rows(StageStatus.APPROVED, StageStatus.APPROVED, StageStatus.PENDING_FINAL_APPROVAL)
        )
        assert result.current_stage == 2

    def test_defaults_to_first_stage(self):
        assert derive_progress_status([]).current_stage == 1
        assert derive_progress_status(rows(StageStatus.NOT_STARTED)).current_stage == 1

    def test_accepts_unordered_rows(self):
        unordered = [
            SimpleNamespace(stage_order=3, status=StageStatus.NOT_STARTED),
            SimpleNamespace(stage_order=1, status=StageStatus.APPROVED),
            SimpleNamespace(stage_order=2, status=StageStatus.APPROVED),
        ]
        assert derive_progress_status(unordered).current_stage == 2


class TestOverallStatus:
    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ((), OverallStatus.NOT_STARTED),
            ((StageStatus.NOT_STARTED, StageStatus.NOT_STARTED), OverallStatus.NOT_STARTED),
            ((StageStatus.IN_REVIEW, StageStatus.NOT_STARTED), OverallStatus.IN_PROGRESS),
            ((StageStatus.APPROVED, StageStatus.APPROVED), OverallStatus.APPROVED),
            ((StageStatus.APPROVED, StageStatus.CHANGES_REQUESTED), OverallStatus.CHANGES_REQUESTED),
            ((StageStatus.APPROVED, StageStatus.PENDING_FINAL_APPROVAL), OverallStatus.NOT_STARTED),
        ],
    )
    def test_overall_status(self, statuses, expected):
        assert derive_progress_status(rows(*statuses)).overall_status == expected

    def test_changes_requested_wins_over_in_review(self):
        result = derive_progress_status(
            rows(StageStatus.CHANGES_REQUESTED, StageStatus.IN_REVIEW)
        )
        assert result.overall_status == OverallStatus.CHANGES_REQUESTED
        assert result.current_stage == 2

    def test_accepts_raw_status_values(self):
        result = derive_progress_status(rows("approved", "in_review"))
        assert result.overall_status == OverallStatus.IN_PROGRESS
        assert result.current_stage == 2
