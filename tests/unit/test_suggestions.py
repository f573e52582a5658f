"""
Unit Tests for Smart Breakdown Suggestions
"""
import pytest
from typing import List

from rehab_goals.core.goals import BreakdownSuggester, Goal, GoalStatus, GoalTier


def _history(completed: int, total: int, tier: GoalTier = GoalTier.LONG_TERM) -> List[Goal]:
    return [
        Goal(
            id=f"h-{i}", patient_id="P-001", tier=tier,
            status=GoalStatus.COMPLETED if i < completed else GoalStatus.CANCELLED,
        )
        for i in range(total)
    ]


class TestBreakdownSuggester:

    def test_baseline_suggestions(self, long_term_goal):
        result = BreakdownSuggester().suggest(long_term_goal)

        assert len(result.suggestions) == 2
        assert len(result.reasoning) == 2
        even, buffered = result.suggestions
        assert even.distribute_progress_evenly and not even.include_buffer_time and even.preserve_original_dates
        assert not buffered.distribute_progress_evenly and buffered.include_buffer_time
        assert not buffered.preserve_original_dates
        assert result.completion_ratio is None

    def test_high_completion_history_shortens_schedule(self, long_term_goal):
        """9 of 10 past goals completed."""
        result = BreakdownSuggester().suggest(long_term_goal, _history(9, 10))

        assert len(result.suggestions) == 3
        shorter = result.suggestions[2]
        assert shorter.child_count == 5
        assert shorter.distribute_progress_evenly
        assert "high historical completion" in result.reasoning[2].lower()
        assert result.completion_ratio == pytest.approx(0.9)

    def test_low_completion_history_adds_buffer(self, long_term_goal):
        result = BreakdownSuggester().suggest(long_term_goal, _history(4, 10))

        longer = result.suggestions[2]
        assert longer.child_count == 7
        assert longer.include_buffer_time
        assert "low historical completion" in result.reasoning[2].lower()

    def test_monthly_goal_adjusts_weeks(self, monthly_goal):
        high = BreakdownSuggester().suggest(monthly_goal, _history(10, 10, GoalTier.MONTHLY))
        low = BreakdownSuggester().suggest(monthly_goal, _history(0, 10, GoalTier.MONTHLY))

        assert high.suggestions[2].child_count == 3
        assert low.suggestions[2].child_count == 5

    @pytest.mark.parametrize("completed", [5, 6, 8])
    def test_middle_ratio_adds_nothing(self, long_term_goal, completed):
        result = BreakdownSuggester().suggest(long_term_goal, _history(completed, 10))
        assert len(result.suggestions) == 2

    def test_empty_history_is_no_history(self, long_term_goal):
        result = BreakdownSuggester().suggest(long_term_goal, [])
        assert len(result.suggestions) == 2
        assert result.completion_ratio is None

    def test_suggestions_pair_with_reasoning(self, long_term_goal):
        result = BreakdownSuggester().suggest(long_term_goal, _history(1, 10))
        data = result.to_dict()
        assert len(data["suggestions"]) == len(data["reasoning"]) == 3
