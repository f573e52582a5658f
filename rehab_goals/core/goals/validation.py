"""
Breakdown Validation Module

Checks a proposed set of child goals against their parent before they are
saved. Every check runs; issues are returned as plain-language strings and
never block on their own. Callers decide whether to persist anyway.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Union

from rehab_goals.utils import get_logger
from .base import Goal, GoalSpec

logger = get_logger(__name__)

# Allowed drift between the children's rate sum and the parent's rate
RATE_SUM_TOLERANCE = 1


@dataclass
class ValidationReport:
    """Result of validating a breakdown."""
    is_valid: bool = True
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "issue_count": len(self.issues),
            "issues": self.issues,
        }


class BreakdownValidator:
    """
    Validates child goals against their parent.

    Checks:
      - rate sum matches the parent within RATE_SUM_TOLERANCE
      - earliest child start / latest child end stay inside the parent range
      - sequence numbers are not duplicated
    """

    def validate(
        self,
        parent: Goal,
        children: Sequence[Union[GoalSpec, Goal]],
    ) -> ValidationReport:
        issues: List[str] = []
        issues.extend(self._check_rate_sum(parent, children))
        issues.extend(self._check_date_range(parent, children))
        issues.extend(self._check_sequence_numbers(children))

        if issues:
            logger.info(f"BreakdownValidator [{parent.id}]: {len(issues)} issue(s)")
        return ValidationReport(is_valid=not issues, issues=issues)

    @staticmethod
    def _check_rate_sum(parent, children) -> List[str]:
        expected = parent.target_completion_rate if parent.target_completion_rate is not None else 100
        total = sum(c.target_completion_rate or 0 for c in children)
        if abs(total - expected) > RATE_SUM_TOLERANCE:
            return [
                f"Child completion rates sum to {total}%, "
                f"which does not match the parent goal's {expected}%."
            ]
        return []

    @staticmethod
    def _check_date_range(parent, children) -> List[str]:
        if parent.start_date is None or parent.end_date is None:
            return []
        dated = [c for c in children if c.start_date is not None and c.end_date is not None]
        if not dated:
            return []

        issues = []
        if min(c.start_date for c in dated) < parent.start_date:
            issues.append("Some child goals start before the parent goal's start date.")
        if max(c.end_date for c in dated) > parent.end_date:
            issues.append("Some child goals end after the parent goal's end date.")
        return issues

    @staticmethod
    def _check_sequence_numbers(children) -> List[str]:
        sequences = [c.sequence_number for c in children if c.sequence_number is not None]
        if len(sequences) != len(set(sequences)):
            return ["Child goals have duplicate sequence numbers."]
        return []
