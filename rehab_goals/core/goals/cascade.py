"""
Cascade Completion Evaluator

Reacts to a goal status change by looking at the goal's siblings and parent,
and decides whether the parent should be promoted to COMPLETED. Promotions
need a person's confirmation; once applied, the same evaluation runs again on
the promoted parent until the cascade settles or reaches the root, where the
completed long-term goal is archived.

Two layers:
  - `on_status_changed(goal)` is read-only and idempotent. It returns one
    CascadeOutcome and never writes.
  - `run_cascade(goal, confirmer)` drives the loop: ask, write, re-evaluate
    one tier up, archive at the root. A declined or unanswered confirmation
    halts the loop; that is a normal ending, not an error.

Callers re-run the evaluation after every leaf write, whichever leaf changed,
so a cascade missed because two siblings were updated at the same moment is
picked up by the next write.
"""
from __future__ import annotations

import inspect
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from rehab_goals.config import Settings, settings as default_settings
from rehab_goals.utils import get_logger, CascadeError, GoalEngineError
from .base import Goal, GoalStatus, GoalTier
from .ports import ArchiveCollaborator, ConfirmationCollaborator, GoalStore, PatientRegistry

logger = get_logger(__name__)

# Rate given to a monthly goal whose weekly slots were all dispositioned
MONTHLY_PROMOTION_RATE = 100


class CascadeAction(str, Enum):
    """What a single evaluation decided."""
    NO_ACTION                 = "no_action"
    PROPOSE_PARENT_COMPLETION = "propose_parent_completion"
    ARCHIVE                   = "archive"            # root completed, other long-term goals open
    ARCHIVE_AND_RESET         = "archive_and_reset"  # root completed, nothing else open
    ERROR                     = "error"


class CascadeTermination(str, Enum):
    """How a cascade run ended."""
    SETTLED    = "settled"     # nothing (more) to promote
    ARCHIVED   = "archived"    # reached and archived the root
    DECLINED   = "declined"    # confirmation refused
    UNANSWERED = "unanswered"  # no confirmation given; proposal left pending
    FAILED     = "failed"      # store or collaborator error


@dataclass
class ProposedPromotion:
    """A parent goal that may be marked COMPLETED once someone confirms."""
    goal_id: str
    patient_id: str
    tier: GoalTier
    actual_completion_rate: int
    triggered_by: str
    completed_children: int = 0
    cancelled_children: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "patient_id": self.patient_id,
            "tier": self.tier.value,
            "actual_completion_rate": self.actual_completion_rate,
            "triggered_by": self.triggered_by,
            "completed_children": self.completed_children,
            "cancelled_children": self.cancelled_children,
        }


@dataclass
class CascadeOutcome:
    action: CascadeAction
    goal_id: str
    patient_id: Optional[str] = None
    proposal: Optional[ProposedPromotion] = None
    reason: str = ""
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def no_action(cls, goal: Goal, reason: str) -> "CascadeOutcome":
        return cls(CascadeAction.NO_ACTION, goal.id, goal.patient_id, reason=reason)

    @classmethod
    def failed(cls, goal: Goal, exc: GoalEngineError) -> "CascadeOutcome":
        return cls(
            CascadeAction.ERROR, goal.id, goal.patient_id,
            reason=exc.message, error=exc.to_dict(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "goal_id": self.goal_id,
            "patient_id": self.patient_id,
            "proposal": self.proposal.to_dict() if self.proposal else None,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class CascadeReport:
    """Everything one cascade run did, step by step."""
    start_goal_id: str
    termination: CascadeTermination = CascadeTermination.SETTLED
    outcomes: List[CascadeOutcome] = field(default_factory=list)
    promoted_goal_ids: List[str] = field(default_factory=list)
    pending_proposal: Optional[ProposedPromotion] = None
    archived_goal_id: Optional[str] = None
    patient_reset: bool = False
    warnings: List[str] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_goal_id": self.start_goal_id,
            "termination": self.termination.value,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "promoted_goal_ids": self.promoted_goal_ids,
            "pending_proposal": self.pending_proposal.to_dict() if self.pending_proposal else None,
            "archived_goal_id": self.archived_goal_id,
            "patient_reset": self.patient_reset,
            "warnings": self.warnings,
            "error": self.error,
        }


class _PreConfirmed(ConfirmationCollaborator):
    """Says yes to one already-confirmed goal; defers every other ask."""

    def __init__(self, goal_id: str, fallback: ConfirmationCollaborator):
        self.goal_id = goal_id
        self.fallback = fallback

    def request_confirmation(self, proposal: ProposedPromotion):
        if proposal.goal_id == self.goal_id:
            return True
        return self.fallback.request_confirmation(proposal)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CascadeEvaluator:
    """
    Bottom-up completion cascade over one goal tree.

    Holds no per-tree state, so concurrent cascades on different trees are
    independent. Collaborators other than the store are optional; without them
    archival and patient reset are reported but not performed.
    """

    def __init__(
        self,
        store: GoalStore,
        archive: Optional[ArchiveCollaborator] = None,
        patients: Optional[PatientRegistry] = None,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self.archive = archive
        self.patients = patients
        self.settings = config or default_settings

    # ------------------------------------------------------------------
    # Evaluation (read-only)
    # ------------------------------------------------------------------

    def on_status_changed(self, goal: Goal) -> CascadeOutcome:
        """
        Decide what a status change on `goal` implies for its parent.

        Store failures come back as an ERROR outcome so the caller can retry;
        they are never reported as NO_ACTION.
        """
        try:
            if goal.parent_id is None:
                return self._evaluate_root(goal)
            return self._evaluate_parent(goal)
        except GoalEngineError as exc:
            logger.error(f"CascadeEvaluator [{goal.id}]: {exc.code} {exc.message}")
            return CascadeOutcome.failed(goal, exc)
        except Exception as exc:
            logger.error(f"CascadeEvaluator [{goal.id}]: evaluation raised {exc}", exc_info=True)
            return CascadeOutcome.failed(
                goal, CascadeError(f"Cascade evaluation failed: {exc}", goal_id=goal.id)
            )

    def _evaluate_root(self, goal: Goal) -> CascadeOutcome:
        if goal.tier != GoalTier.LONG_TERM or goal.status != GoalStatus.COMPLETED:
            return CascadeOutcome.no_action(goal, "no parent goal to promote")

        open_statuses = [s for s in GoalStatus if s != GoalStatus.COMPLETED]
        still_open = [
            g for g in self.store.fetch_goals_by_patient_and_tier(
                goal.patient_id, GoalTier.LONG_TERM, open_statuses
            )
            if g.id != goal.id
        ]
        if still_open:
            logger.info(
                f"CascadeEvaluator [{goal.id}]: long-term goal completed, "
                f"{len(still_open)} other long-term goal(s) still open"
            )
            return CascadeOutcome(
                CascadeAction.ARCHIVE, goal.id, goal.patient_id,
                reason=f"{len(still_open)} other long-term goal(s) still open",
            )

        logger.info(f"CascadeEvaluator [{goal.id}]: last long-term goal completed for patient {goal.patient_id}")
        return CascadeOutcome(
            CascadeAction.ARCHIVE_AND_RESET, goal.id, goal.patient_id,
            reason="all long-term goals completed; patient needs a new goal",
        )

    def _evaluate_parent(self, goal: Goal) -> CascadeOutcome:
        parent = self.store.fetch_goal(goal.parent_id)
        if parent is None:
            logger.warning(f"CascadeEvaluator [{goal.id}]: parent {goal.parent_id} not found")
            return CascadeOutcome.no_action(goal, f"parent goal {goal.parent_id} not found")

        siblings = self.store.fetch_siblings(goal.parent_id)
        if not siblings:
            return CascadeOutcome.no_action(goal, "no sibling goals found")

        open_count = sum(1 for s in siblings if not s.is_terminal)
        if open_count:
            return CascadeOutcome.no_action(
                goal, f"{open_count} of {len(siblings)} sibling goal(s) still open"
            )

        completed = sum(1 for s in siblings if s.status == GoalStatus.COMPLETED)
        if completed == 0:
            return CascadeOutcome.no_action(goal, "all sibling goals were cancelled")

        if parent.status == GoalStatus.COMPLETED:
            return CascadeOutcome.no_action(goal, "parent goal already completed")

        proposal = ProposedPromotion(
            goal_id=parent.id,
            patient_id=parent.patient_id,
            tier=parent.tier,
            actual_completion_rate=self._parent_completion_rate(parent),
            triggered_by=goal.id,
            completed_children=completed,
            cancelled_children=len(siblings) - completed,
        )
        logger.info(
            f"CascadeEvaluator [{goal.id}]: proposing completion of {parent.tier.value} "
            f"goal {parent.id} at {proposal.actual_completion_rate}%"
        )
        return CascadeOutcome(
            CascadeAction.PROPOSE_PARENT_COMPLETION, goal.id, goal.patient_id,
            proposal=proposal,
            reason="all sibling goals are closed",
        )

    def _parent_completion_rate(self, parent: Goal) -> int:
        if parent.tier != GoalTier.LONG_TERM:
            return MONTHLY_PROMOTION_RATE

        # Completed weekly leaves across every month, over a fixed number of
        # expected weekly slots rather than the actual child count.
        total_weekly = 0
        completed_weekly = 0
        for monthly in self.store.fetch_children(parent.id):
            weekly = [g for g in self.store.fetch_children(monthly.id) if g.tier == GoalTier.WEEKLY]
            total_weekly += len(weekly)
            completed_weekly += sum(1 for g in weekly if g.status == GoalStatus.COMPLETED)

        if total_weekly == 0:
            return 0
        rate = _round_half_up(100 * completed_weekly / self.settings.expected_weekly_slots)
        return max(0, min(100, rate))

    # ------------------------------------------------------------------
    # Applying (writes)
    # ------------------------------------------------------------------

    def apply_promotion(self, proposal: ProposedPromotion) -> Goal:
        """Mark the proposed parent COMPLETED. Raises GoalStoreError on failure."""
        promoted = self.store.update_goal(proposal.goal_id, {
            "status": GoalStatus.COMPLETED,
            "actual_completion_rate": proposal.actual_completion_rate,
            "completion_date": date.today(),
        })
        logger.info(
            f"CascadeEvaluator: {proposal.tier.value} goal {proposal.goal_id} completed "
            f"at {proposal.actual_completion_rate}%"
        )
        return promoted

    async def run_cascade(
        self,
        goal: Goal,
        confirmer: ConfirmationCollaborator,
    ) -> CascadeReport:
        """
        Evaluate `goal` and keep promoting upward while confirmations are given.

        The loop re-applies the same evaluation to each promoted parent and
        stops at the first tier where nothing is proposed, or when a proposal
        is declined or left unanswered.
        """
        report = CascadeReport(start_goal_id=goal.id)
        current = goal
        while True:
            outcome = self.on_status_changed(current)
            report.outcomes.append(outcome)

            if outcome.action == CascadeAction.ERROR:
                report.termination = CascadeTermination.FAILED
                report.error = outcome.error
                return report

            if outcome.action in (CascadeAction.ARCHIVE, CascadeAction.ARCHIVE_AND_RESET):
                self._archive(outcome, report)
                return report

            if outcome.action != CascadeAction.PROPOSE_PARENT_COMPLETION:
                report.termination = CascadeTermination.SETTLED
                return report

            proposal = outcome.proposal
            try:
                decision = await self._ask(confirmer, proposal)
            except Exception as exc:
                logger.error(
                    f"CascadeEvaluator: confirmation for goal {proposal.goal_id} raised {exc}",
                    exc_info=True
                )
                report.termination = CascadeTermination.FAILED
                report.error = CascadeError(
                    f"Confirmation request failed: {exc}", goal_id=proposal.goal_id
                ).to_dict()
                return report

            if decision is None:
                logger.info(f"CascadeEvaluator: completion of goal {proposal.goal_id} awaiting confirmation")
                report.termination = CascadeTermination.UNANSWERED
                report.pending_proposal = proposal
                return report
            if not decision:
                logger.info(f"CascadeEvaluator: completion of goal {proposal.goal_id} declined")
                report.termination = CascadeTermination.DECLINED
                return report

            try:
                current = self.apply_promotion(proposal)
            except GoalEngineError as exc:
                logger.error(f"CascadeEvaluator: promotion of goal {proposal.goal_id} failed: {exc.message}")
                report.termination = CascadeTermination.FAILED
                report.error = exc.to_dict()
                return report
            except Exception as exc:
                logger.error(
                    f"CascadeEvaluator: promotion of goal {proposal.goal_id} raised {exc}",
                    exc_info=True
                )
                report.termination = CascadeTermination.FAILED
                report.error = CascadeError(
                    f"Promotion failed: {exc}", goal_id=proposal.goal_id
                ).to_dict()
                return report
            report.promoted_goal_ids.append(current.id)

    async def resolve(
        self,
        proposal: ProposedPromotion,
        confirmed: bool,
        confirmer: ConfirmationCollaborator,
    ) -> CascadeReport:
        """
        Answer a proposal that an earlier run left unanswered.

        The triggering goal is evaluated again first, so a proposal that went
        stale (a sibling was reopened, the parent was completed elsewhere) is
        dropped instead of written.
        """
        if not confirmed:
            logger.info(f"CascadeEvaluator: completion of goal {proposal.goal_id} declined")
            return CascadeReport(
                start_goal_id=proposal.triggered_by,
                termination=CascadeTermination.DECLINED,
            )

        try:
            trigger = self.store.fetch_goal(proposal.triggered_by)
        except GoalEngineError as exc:
            return CascadeReport(
                start_goal_id=proposal.triggered_by,
                termination=CascadeTermination.FAILED,
                error=exc.to_dict(),
            )
        except Exception as exc:
            logger.error(
                f"CascadeEvaluator: loading goal {proposal.triggered_by} raised {exc}",
                exc_info=True
            )
            return CascadeReport(
                start_goal_id=proposal.triggered_by,
                termination=CascadeTermination.FAILED,
                error=CascadeError(
                    f"Could not load goal {proposal.triggered_by}: {exc}", goal_id=proposal.goal_id
                ).to_dict(),
            )
        if trigger is None:
            return CascadeReport(
                start_goal_id=proposal.triggered_by,
                termination=CascadeTermination.SETTLED,
                warnings=[f"Goal {proposal.triggered_by} no longer exists"],
            )

        return await self.run_cascade(trigger, _PreConfirmed(proposal.goal_id, confirmer))

    @staticmethod
    async def _ask(confirmer: ConfirmationCollaborator, proposal: ProposedPromotion) -> Optional[bool]:
        decision = confirmer.request_confirmation(proposal)
        if inspect.isawaitable(decision):
            decision = await decision
        return decision

    def _archive(self, outcome: CascadeOutcome, report: CascadeReport) -> None:
        report.termination = CascadeTermination.ARCHIVED
        report.archived_goal_id = outcome.goal_id

        # Archive and reset failures do not undo the completion already written
        if self.archive is None:
            report.warnings.append("No archive collaborator configured; goal tree not archived")
        else:
            try:
                self.archive.archive_goal_tree(outcome.goal_id)
            except Exception as exc:
                logger.error(f"CascadeEvaluator: archiving goal {outcome.goal_id} failed: {exc}", exc_info=True)
                report.warnings.append(f"Archiving goal {outcome.goal_id} failed: {exc}")

        if outcome.action != CascadeAction.ARCHIVE_AND_RESET:
            return
        if self.patients is None:
            report.warnings.append("No patient registry configured; patient status not reset")
            return
        try:
            self.patients.mark_needs_new_goal(outcome.patient_id)
            report.patient_reset = True
        except Exception as exc:
            logger.error(f"CascadeEvaluator: resetting patient {outcome.patient_id} failed: {exc}", exc_info=True)
            report.warnings.append(f"Resetting patient {outcome.patient_id} failed: {exc}")
