"""
Unit Tests for the Breakdown Validator
"""
import pytest
from dataclasses import replace
from datetime import date

from rehab_goals.core.goals import (
    BreakdownConfig,
    BreakdownValidator,
    GoalBreakdownEngine,
    GoalSpec,
    GoalTier,
)


@pytest.fixture
def validator() -> BreakdownValidator:
    return BreakdownValidator()


@pytest.fixture
def clean_children(long_term_goal):
    return GoalBreakdownEngine().decompose(
        long_term_goal, BreakdownConfig(preserve_original_dates=True)
    ).children


class TestBreakdownValidator:

    def test_engine_output_is_valid(self, validator, long_term_goal, clean_children):
        report = validator.validate(long_term_goal, clean_children)
        assert report.is_valid
        assert report.issues == []

    def test_rate_sum_within_tolerance(self, validator, long_term_goal, clean_children):
        clean_children[-1] = replace(clean_children[-1], target_completion_rate=19)
        assert validator.validate(long_term_goal, clean_children).is_valid

    def test_rate_sum_mismatch(self, validator, long_term_goal, clean_children):
        clean_children[-1] = replace(clean_children[-1], target_completion_rate=10)
        report = validator.validate(long_term_goal, clean_children)

        assert not report.is_valid
        assert len(report.issues) == 1
        assert "90%" in report.issues[0]

    def test_child_starts_before_parent(self, validator, long_term_goal, clean_children):
        clean_children[0] = replace(clean_children[0], start_date=date(2025, 12, 15))
        report = validator.validate(long_term_goal, clean_children)
        assert report.issues == ["Some child goals start before the parent goal's start date."]

    def test_child_ends_after_parent(self, validator, long_term_goal):
        parent = replace(long_term_goal, end_date=date(2026, 6, 15))
        children = GoalBreakdownEngine().decompose(
            parent, BreakdownConfig(preserve_original_dates=False)
        ).children

        report = validator.validate(parent, children)
        assert report.issues == ["Some child goals end after the parent goal's end date."]

    def test_undated_children_are_skipped(self, validator, long_term_goal, clean_children):
        clean_children[0] = replace(clean_children[0], start_date=date(2025, 1, 1), end_date=None)
        assert validator.validate(long_term_goal, clean_children).is_valid

    def test_duplicate_sequence_numbers(self, validator, long_term_goal, clean_children):
        clean_children[1] = replace(clean_children[1], sequence_number=1)
        report = validator.validate(long_term_goal, clean_children)
        assert report.issues == ["Child goals have duplicate sequence numbers."]

    def test_all_checks_run(self, validator, long_term_goal):
        children = [
            GoalSpec(patient_id="P-001", tier=GoalTier.MONTHLY, parent_id="lt-1", sequence_number=1,
                     start_date=date(2025, 12, 1), end_date=date(2026, 1, 31), target_completion_rate=10),
            GoalSpec(patient_id="P-001", tier=GoalTier.MONTHLY, parent_id="lt-1", sequence_number=1,
                     start_date=date(2026, 6, 1), end_date=date(2026, 7, 31), target_completion_rate=10),
        ]
        report = validator.validate(long_term_goal, children)

        assert not report.is_valid
        assert len(report.issues) == 4
        assert report.to_dict()["issue_count"] == 4

    def test_parent_without_dates_skips_range_check(self, validator, long_term_goal, clean_children):
        parent = replace(long_term_goal, start_date=None, end_date=None)
        assert validator.validate(parent, clean_children).is_valid
