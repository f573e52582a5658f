"""
Goal Breakdown Engine

Splits a long-term goal into monthly children, or a monthly goal into weekly
children, with contiguous sequence numbers, calendar-aligned date ranges and
an exact allocation of the parent's target completion rate.

Usage:
    from rehab_goals.core.goals import GoalBreakdownEngine, BreakdownConfig

    engine = GoalBreakdownEngine()
    result = engine.decompose(goal, BreakdownConfig(preserve_original_dates=True))
    if result.success:
        store.create_goals(result.children)

Rate allocation:
    base = rate // N, remainder = rate % N; every child gets `base` and the
    last child also gets `remainder`, so the children always sum to the parent.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from rehab_goals.config import Settings, settings as default_settings
from rehab_goals.utils import get_logger, BreakdownError, GoalEngineError
from .base import (
    BreakdownSource,
    Goal,
    GoalSpec,
    GoalStatus,
    GoalTier,
    Provenance,
)

logger = get_logger(__name__)

# Days per period used for the "goal period is too short" warning
_DAYS_PER_MONTH = 30
_DAYS_PER_WEEK  = 7

# Python weekday() of the last day of a Sunday-first calendar week
_SATURDAY = 5

_SOURCE_BY_TIER = {
    GoalTier.LONG_TERM: BreakdownSource.LONG_TERM_GOAL,
    GoalTier.MONTHLY:   BreakdownSource.MONTHLY_GOAL,
}


# ── Calendar helpers ─────────────────────────────────────────────────────────

def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def end_of_month(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def end_of_week(day: date) -> date:
    """Saturday closing the Sunday-first week that contains `day`."""
    return day + timedelta(days=(_SATURDAY - day.weekday()) % 7)


# ── Contracts ────────────────────────────────────────────────────────────────

@dataclass
class BreakdownConfig:
    """
    Options for one breakdown.

    child_count:               None → tier default (6 months / 4 weeks)
    distribute_progress_evenly: recorded with the plan; allocation is always
                               base + remainder-on-last
    include_buffer_time:       recorded with the plan, not applied to dates
    preserve_original_dates:   last child ends exactly on the parent's end date
    """
    child_count: Optional[int] = None
    distribute_progress_evenly: bool = True
    include_buffer_time: bool = False
    preserve_original_dates: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "child_count": self.child_count,
            "distribute_progress_evenly": self.distribute_progress_evenly,
            "include_buffer_time": self.include_buffer_time,
            "preserve_original_dates": self.preserve_original_dates,
        }


@dataclass
class BreakdownResult:
    """Children for the next tier down, or errors with no children at all."""
    success: bool
    children: List[GoalSpec] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @classmethod
    def failed(cls, *errors: str) -> "BreakdownResult":
        return cls(success=False, errors=list(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "children": [c.to_dict() for c in self.children],
            "warnings": self.warnings,
            "errors": self.errors,
        }


@dataclass
class HierarchyBreakdown:
    """
    Monthly children of a long-term goal plus the weekly children of each.

    Weekly specs point at a placeholder parent id until the monthly goals are
    persisted; see `placeholder_id()` and `relink_weekly()`.
    """
    success: bool
    monthly: List[GoalSpec] = field(default_factory=list)
    weekly_by_month: Dict[int, List[GoalSpec]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @staticmethod
    def placeholder_id(root_id: str, sequence_number: int) -> str:
        return f"pending-{root_id}-m{sequence_number}"

    @staticmethod
    def relink_weekly(weekly: List[GoalSpec], monthly_goal: Goal) -> List[GoalSpec]:
        """Point weekly specs at the persisted monthly goal."""
        relinked = []
        for spec in weekly:
            criteria = spec.evaluation_criteria
            if criteria.provenance is not None:
                criteria = criteria.derive(
                    replace(criteria.provenance, original_goal_id=monthly_goal.id)
                )
            relinked.append(replace(
                spec, parent_id=monthly_goal.id, evaluation_criteria=criteria
            ))
        return relinked

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "monthly": [m.to_dict() for m in self.monthly],
            "weekly_by_month": {
                str(seq): [w.to_dict() for w in weeks]
                for seq, weeks in self.weekly_by_month.items()
            },
            "warnings": self.warnings,
            "errors": self.errors,
        }


# ── Engine ───────────────────────────────────────────────────────────────────

class GoalBreakdownEngine:
    """
    Generates next-tier child goal specs. Pure: nothing is persisted here.

    Stateless, so one instance can be shared between requests.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings

    def default_child_count(self, tier: GoalTier) -> int:
        if tier == GoalTier.LONG_TERM:
            return self.settings.months_per_long_term
        return self.settings.weeks_per_month

    def decompose(
        self,
        parent: Goal,
        config: Optional[BreakdownConfig] = None,
    ) -> BreakdownResult:
        """
        Split `parent` into the next tier down.

        Returns:
            BreakdownResult with `success=False` and no children when the
            parent is missing dates, sits on an undecomposable tier, or the
            child count is invalid. Short goal periods only add a warning.
        """
        config = config or BreakdownConfig()
        try:
            return self._decompose(parent, config)
        except GoalEngineError as exc:
            logger.warning(f"GoalBreakdownEngine [{parent.id}]: {exc.message}")
            return BreakdownResult.failed(exc.message)
        except Exception as exc:
            logger.error(
                f"GoalBreakdownEngine [{parent.id}]: breakdown raised {exc}",
                exc_info=True
            )
            return BreakdownResult.failed(f"Unexpected error while splitting goal: {exc}")

    def decompose_full_hierarchy(
        self,
        parent: Goal,
        config: Optional[BreakdownConfig] = None,
    ) -> HierarchyBreakdown:
        """Split a long-term goal into months, then each month into weeks."""
        config = config or BreakdownConfig()
        if parent.tier != GoalTier.LONG_TERM:
            return HierarchyBreakdown(
                success=False,
                errors=[f"Full hierarchy breakdown needs a long_term goal, got {parent.tier.value}"],
            )

        monthly_result = self.decompose(parent, config)
        if not monthly_result.success:
            return HierarchyBreakdown(success=False, errors=monthly_result.errors)

        # child_count in the config describes the months; weeks use their default
        weekly_config = replace(config, child_count=None)
        hierarchy = HierarchyBreakdown(
            success=True,
            monthly=monthly_result.children,
            warnings=list(monthly_result.warnings),
        )
        for month_spec in monthly_result.children:
            temp_monthly = month_spec.to_goal(
                HierarchyBreakdown.placeholder_id(parent.id, month_spec.sequence_number)
            )
            weekly_result = self.decompose(temp_monthly, weekly_config)
            hierarchy.warnings.extend(weekly_result.warnings)
            if weekly_result.success:
                hierarchy.weekly_by_month[month_spec.sequence_number] = weekly_result.children
            else:
                hierarchy.errors.extend(weekly_result.errors)

        hierarchy.success = not hierarchy.errors
        logger.info(
            f"GoalBreakdownEngine [{parent.id}]: full hierarchy → "
            f"{len(hierarchy.monthly)} monthly, "
            f"{sum(len(w) for w in hierarchy.weekly_by_month.values())} weekly"
        )
        return hierarchy

    # ------------------------------------------------------------------

    def _decompose(self, parent: Goal, config: BreakdownConfig) -> BreakdownResult:
        if parent.start_date is None or parent.end_date is None:
            raise BreakdownError("Start date and end date are required", goal_id=parent.id)

        if not parent.tier.is_decomposable:
            raise BreakdownError(
                f"{parent.tier.value} goals cannot be broken down further",
                goal_id=parent.id,
                details={"tier": parent.tier.value},
            )
        child_tier = parent.tier.child_tier

        count = config.child_count if config.child_count is not None else self.default_child_count(parent.tier)
        if count < 1:
            raise BreakdownError(
                f"Child count must be at least 1, got {count}",
                goal_id=parent.id,
                details={"child_count": count},
            )

        warnings = []
        short_warning = self._short_period_warning(parent, child_tier, count)
        if short_warning:
            warnings.append(short_warning)

        rate = parent.target_completion_rate if parent.target_completion_rate is not None else 100
        base, remainder = divmod(rate, count)

        source = _SOURCE_BY_TIER[parent.tier]
        children: List[GoalSpec] = []
        for i in range(count):
            is_last = i == count - 1
            start, end = self._period(parent, child_tier, i)
            if is_last and config.preserve_original_dates:
                end = parent.end_date

            children.append(GoalSpec(
                patient_id=parent.patient_id,
                tier=child_tier,
                parent_id=parent.id,
                sequence_number=i + 1,
                start_date=start,
                end_date=end,
                target_completion_rate=base + (remainder if is_last else 0),
                status=GoalStatus.PENDING,
                title=self._child_title(parent, child_tier, i + 1),
                description=self._child_description(parent),
                priority=parent.priority,
                category_id=parent.category_id,
                created_by=parent.created_by,
                evaluation_criteria=parent.evaluation_criteria.derive(
                    Provenance(breakdown_source=source, original_goal_id=parent.id)
                ),
            ))

        logger.debug(
            f"GoalBreakdownEngine [{parent.id}]: {count} {child_tier.value} goal(s), "
            f"rates={[c.target_completion_rate for c in children]}"
        )
        return BreakdownResult(success=True, children=children, warnings=warnings)

    @staticmethod
    def _period(parent: Goal, child_tier: GoalTier, index: int):
        if child_tier == GoalTier.MONTHLY:
            start = add_months(parent.start_date, index)
            return start, end_of_month(start)
        start = parent.start_date + timedelta(weeks=index)
        return start, end_of_week(start)

    @staticmethod
    def _short_period_warning(parent: Goal, child_tier: GoalTier, count: int) -> Optional[str]:
        days = (parent.end_date - parent.start_date).days
        if child_tier == GoalTier.MONTHLY:
            periods, unit = math.ceil(days / _DAYS_PER_MONTH), "months"
        else:
            periods, unit = math.ceil(days / _DAYS_PER_WEEK), "weeks"
        if periods < count:
            return f"Goal period is shorter than {count} {unit}; consider adjusting the dates."
        return None

    @staticmethod
    def _child_title(parent: Goal, child_tier: GoalTier, number: int) -> str:
        label = "Month" if child_tier == GoalTier.MONTHLY else "Week"
        return f"{parent.title} - {label} {number}" if parent.title else f"{label} {number}"

    @staticmethod
    def _child_description(parent: Goal) -> str:
        origin = "long-term" if parent.tier == GoalTier.LONG_TERM else "monthly"
        note = f"[Auto-generated from {origin} goal: {parent.title or parent.id}]"
        return f"{parent.description}\n\n{note}" if parent.description else note
