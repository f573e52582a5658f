"""
Smart Breakdown Suggestions

Proposes breakdown configurations for a goal, adjusting the schedule length
by the patient's historical completion ratio.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from rehab_goals.config import Settings, settings as default_settings
from rehab_goals.utils import get_logger
from .base import Goal, GoalStatus, GoalTier
from .breakdown import BreakdownConfig

logger = get_logger(__name__)


@dataclass
class SuggestionSet:
    """Suggested configurations; reasoning[i] explains suggestions[i]."""
    suggestions: List[BreakdownConfig] = field(default_factory=list)
    reasoning: List[str] = field(default_factory=list)
    completion_ratio: Optional[float] = None

    def add(self, config: BreakdownConfig, reason: str) -> None:
        self.suggestions.append(config)
        self.reasoning.append(reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestions": [s.to_dict() for s in self.suggestions],
            "reasoning": self.reasoning,
            "completion_ratio": self.completion_ratio,
        }


class BreakdownSuggester:

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings

    def suggest(
        self,
        goal: Goal,
        history: Optional[Sequence[Goal]] = None,
    ) -> SuggestionSet:
        result = SuggestionSet()
        result.add(
            BreakdownConfig(
                distribute_progress_evenly=True,
                include_buffer_time=False,
                preserve_original_dates=True,
            ),
            "Even progress distribution keeps a steady pace",
        )
        result.add(
            BreakdownConfig(
                distribute_progress_evenly=False,
                include_buffer_time=True,
                preserve_original_dates=False,
            ),
            "Buffer time absorbs unexpected delays",
        )

        if not history:
            return result

        completed = sum(1 for g in history if g.status == GoalStatus.COMPLETED)
        ratio = completed / len(history)
        result.completion_ratio = ratio
        default_count = self._default_count(goal.tier)

        if ratio > self.settings.high_completion_ratio:
            result.add(
                BreakdownConfig(
                    child_count=self._adjusted(default_count, -1),
                    distribute_progress_evenly=True,
                    include_buffer_time=False,
                ),
                "Shorter schedule justified by high historical completion",
            )
        elif ratio < self.settings.low_completion_ratio:
            result.add(
                BreakdownConfig(
                    child_count=self._adjusted(default_count, +1),
                    distribute_progress_evenly=False,
                    include_buffer_time=True,
                ),
                "Extra buffer justified by low historical completion",
            )

        logger.debug(
            f"BreakdownSuggester [{goal.id}]: completion ratio {ratio:.2f} "
            f"over {len(history)} goal(s) → {len(result.suggestions)} suggestion(s)"
        )
        return result

    def _default_count(self, tier: GoalTier) -> Optional[int]:
        if tier == GoalTier.LONG_TERM:
            return self.settings.months_per_long_term
        if tier == GoalTier.MONTHLY:
            return self.settings.weeks_per_month
        return None

    @staticmethod
    def _adjusted(count: Optional[int], delta: int) -> Optional[int]:
        # Weekly goals have no children, so there is no count to adjust
        if count is None:
            return None
        return max(1, count + delta)
