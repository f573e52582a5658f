"""
Goal Service

Glue between the HTTP layer, the goal engines and the store:
  - breakdown: decompose + validate, persist only a clean result
  - check-ins and status changes: write, then run the completion cascade
  - confirmations: cascade proposals are parked until a person answers them
"""
import threading
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from rehab_goals.config import Settings, settings as default_settings
from rehab_goals.core.goals import (
    BreakdownConfig,
    BreakdownResult,
    BreakdownSuggester,
    BreakdownValidator,
    CascadeEvaluator,
    CascadeReport,
    CascadeTermination,
    ConfirmationCollaborator,
    Goal,
    GoalBreakdownEngine,
    GoalSpec,
    GoalStatus,
    GoalTier,
    HierarchyBreakdown,
    ProposedPromotion,
    SuggestionSet,
    ValidationReport,
)
from rehab_goals.utils import get_logger, BreakdownError, CascadeError, GoalNotFoundError
from .archive import GoalTreeArchive, InMemoryPatientRegistry
from .goal_store import InMemoryGoalStore

logger = get_logger(__name__)


class CheckInResult(str, Enum):
    """Weekly check-in answers."""
    ACHIEVED     = "achieved"
    NOT_ACHIEVED = "not_achieved"
    RESET        = "reset"


class ParkedConfirmation(ConfirmationCollaborator):
    """Leaves every proposal unanswered so it can be confirmed later over HTTP."""

    def request_confirmation(self, proposal: ProposedPromotion):
        return None


class GoalService:

    def __init__(
        self,
        store: Optional[InMemoryGoalStore] = None,
        config: Optional[Settings] = None,
    ):
        self.settings = config or default_settings
        self.store = store or InMemoryGoalStore()
        self.archive = GoalTreeArchive(self.store)
        self.patients = InMemoryPatientRegistry()
        self.breakdown = GoalBreakdownEngine(self.settings)
        self.validator = BreakdownValidator()
        self.suggester = BreakdownSuggester(self.settings)
        self.cascade = CascadeEvaluator(
            self.store, archive=self.archive, patients=self.patients, config=self.settings
        )
        self._confirmer = ParkedConfirmation()
        self._pending: Dict[str, ProposedPromotion] = {}
        self._pending_lock = threading.Lock()

    # ── Goals ────────────────────────────────────────────────────────────

    def create_long_term_goal(self, spec: GoalSpec) -> Goal:
        if spec.tier != GoalTier.LONG_TERM or spec.parent_id is not None:
            raise BreakdownError("Only long-term goals without a parent can be created directly")
        if spec.start_date and spec.end_date and spec.start_date > spec.end_date:
            raise BreakdownError("Start date must not be after end date")
        goal = self.store.create_goals([spec])[0]
        self.patients.clear(goal.patient_id)
        logger.info(f"GoalService: created long-term goal {goal.id} for patient {goal.patient_id}")
        return goal

    def get_goal(self, goal_id: str) -> Goal:
        goal = self.store.fetch_goal(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    def get_children(self, goal_id: str) -> List[Goal]:
        self.get_goal(goal_id)
        return self.store.fetch_children(goal_id)

    # ── Breakdown ────────────────────────────────────────────────────────

    def preview_breakdown(
        self, goal_id: str, config: BreakdownConfig
    ) -> Tuple[BreakdownResult, ValidationReport]:
        goal = self.get_goal(goal_id)
        result = self.breakdown.decompose(goal, config)
        if not result.success:
            return result, ValidationReport()
        return result, self.validator.validate(goal, result.children)

    def apply_breakdown(
        self,
        goal_id: str,
        config: BreakdownConfig,
        full_hierarchy: bool = False,
    ) -> List[Goal]:
        """Persist a breakdown. Refuses errors, validation issues and re-splits."""
        goal = self.get_goal(goal_id)
        if self.store.fetch_children(goal_id):
            raise BreakdownError("Goal has already been broken down", goal_id=goal_id)

        if full_hierarchy:
            return self._apply_hierarchy(goal, self.breakdown.decompose_full_hierarchy(goal, config))

        result = self.breakdown.decompose(goal, config)
        self._raise_on_problems(goal, result.success, result.errors, result.children)
        created = self.store.create_goals(result.children)
        logger.info(f"GoalService: goal {goal_id} broken into {len(created)} {created[0].tier.value} goal(s)")
        return created

    def _apply_hierarchy(self, goal: Goal, hierarchy: HierarchyBreakdown) -> List[Goal]:
        self._raise_on_problems(goal, hierarchy.success, hierarchy.errors, hierarchy.monthly)
        # Weekly specs are validated against their own, not yet saved, month
        for month in hierarchy.monthly:
            weekly = hierarchy.weekly_by_month.get(month.sequence_number, [])
            placeholder = HierarchyBreakdown.placeholder_id(goal.id, month.sequence_number)
            self._raise_on_problems(month.to_goal(placeholder), True, [], weekly)

        monthly_goals = self.store.create_goals(hierarchy.monthly)
        weekly_goals: List[Goal] = []
        for monthly in monthly_goals:
            weekly = hierarchy.weekly_by_month.get(monthly.sequence_number, [])
            weekly_goals.extend(self.store.create_goals(HierarchyBreakdown.relink_weekly(weekly, monthly)))
        logger.info(
            f"GoalService: goal {goal.id} broken into {len(monthly_goals)} monthly "
            f"and {len(weekly_goals)} weekly goal(s)"
        )
        return monthly_goals + weekly_goals

    def _raise_on_problems(self, parent: Goal, success: bool, errors, children) -> None:
        if not success:
            raise BreakdownError("; ".join(errors), goal_id=parent.id, details={"errors": errors})
        report = self.validator.validate(parent, children)
        if not report.is_valid:
            raise BreakdownError(
                "Breakdown failed validation", goal_id=parent.id,
                details={"issues": report.issues},
            )

    # ── Suggestions ──────────────────────────────────────────────────────

    def suggest(self, goal_id: str, history: Optional[Sequence[Goal]] = None) -> SuggestionSet:
        goal = self.get_goal(goal_id)
        if history is None:
            history = [
                g for g in self.store.fetch_goals_by_patient_and_tier(goal.patient_id, goal.tier)
                if g.id != goal.id
            ]
        return self.suggester.suggest(goal, history)

    # ── Status changes and cascade ───────────────────────────────────────

    async def check_in(self, goal_id: str, result: CheckInResult) -> Tuple[Goal, CascadeReport]:
        goal = self.get_goal(goal_id)
        if goal.tier != GoalTier.WEEKLY:
            raise CascadeError("Check-ins apply to weekly goals only", goal_id=goal_id)

        if result == CheckInResult.ACHIEVED:
            patch = {"status": GoalStatus.COMPLETED, "actual_completion_rate": 100, "completion_date": date.today()}
        elif result == CheckInResult.NOT_ACHIEVED:
            patch = {"status": GoalStatus.CANCELLED, "actual_completion_rate": 0, "completion_date": None}
        else:
            patch = {"status": GoalStatus.ACTIVE, "actual_completion_rate": 0, "completion_date": None}

        updated = self.store.update_goal(goal_id, patch)
        return updated, await self._run(updated)

    async def change_status(self, goal_id: str, status: GoalStatus) -> Tuple[Goal, CascadeReport]:
        self.get_goal(goal_id)
        if status == GoalStatus.COMPLETED:
            patch = {"status": status, "completion_date": date.today()}
        else:
            patch = {"status": status, "actual_completion_rate": 0, "completion_date": None}
        updated = self.store.update_goal(goal_id, patch)
        return updated, await self._run(updated)

    async def confirm_completion(self, goal_id: str, confirmed: bool) -> CascadeReport:
        with self._pending_lock:
            proposal = self._pending.pop(goal_id, None)
        if proposal is None:
            raise CascadeError("No completion is awaiting confirmation for this goal", goal_id=goal_id)
        report = await self.cascade.resolve(proposal, confirmed, self._confirmer)
        self._park(report)
        return report

    def pending_confirmations(self, patient_id: Optional[str] = None) -> List[ProposedPromotion]:
        with self._pending_lock:
            return [
                p for p in self._pending.values()
                if patient_id is None or p.patient_id == patient_id
            ]

    async def _run(self, goal: Goal) -> CascadeReport:
        report = await self.cascade.run_cascade(goal, self._confirmer)
        if report.termination != CascadeTermination.FAILED:
            self._drop_stale(goal, report)
        self._park(report)
        return report

    def _drop_stale(self, goal: Goal, report: CascadeReport) -> None:
        # A finished run re-proposes the parent if its proposal still holds
        stale = set(report.promoted_goal_ids)
        if goal.parent_id is not None:
            stale.add(goal.parent_id)
        if goal.is_terminal:
            stale.add(goal.id)
        if report.pending_proposal is not None:
            stale.discard(report.pending_proposal.goal_id)
        with self._pending_lock:
            for goal_id in stale:
                if self._pending.pop(goal_id, None) is not None:
                    logger.info(f"GoalService: dropped stale completion proposal for goal {goal_id}")

    def _park(self, report: CascadeReport) -> None:
        if report.pending_proposal is not None:
            with self._pending_lock:
                self._pending[report.pending_proposal.goal_id] = report.pending_proposal
