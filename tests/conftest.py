"""
Pytest Configuration and Fixtures

Shared goal fixtures, a tree builder and fake collaborators for the goal
engine tests.
"""
import pytest
from datetime import date
from pathlib import Path
from typing import List, Optional
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rehab_goals.core.goals import (
    ArchiveCollaborator,
    ConfirmationCollaborator,
    EvaluationCriteria,
    Goal,
    GoalStatus,
    GoalTier,
    PatientRegistry,
)
from rehab_goals.services.goal_store import InMemoryGoalStore

C = GoalStatus.COMPLETED
X = GoalStatus.CANCELLED
A = GoalStatus.ACTIVE


class RecordingConfirmer(ConfirmationCollaborator):
    """Answers every proposal with a fixed decision and remembers what it saw."""

    def __init__(self, decision: Optional[bool] = True):
        self.decision = decision
        self.seen = []

    def request_confirmation(self, proposal):
        self.seen.append(proposal)
        return self.decision


class AsyncConfirmer(RecordingConfirmer):

    async def request_confirmation(self, proposal):
        self.seen.append(proposal)
        return self.decision


class RecordingArchive(ArchiveCollaborator):

    def __init__(self, fail: bool = False):
        self.archived: List[str] = []
        self.fail = fail

    def archive_goal_tree(self, root_goal_id: str) -> None:
        if self.fail:
            raise RuntimeError("archive unavailable")
        self.archived.append(root_goal_id)


class RecordingPatients(PatientRegistry):

    def __init__(self):
        self.reset: List[str] = []

    def mark_needs_new_goal(self, patient_id: str) -> None:
        self.reset.append(patient_id)


def build_tree(
    store: InMemoryGoalStore,
    weekly_statuses: List[List[GoalStatus]],
    monthly_statuses: Optional[List[GoalStatus]] = None,
    root_status: GoalStatus = GoalStatus.ACTIVE,
    patient_id: str = "P-001",
    root_id: str = "lt-1",
) -> Goal:
    """
    Insert a long-term goal with one monthly child per entry of
    `weekly_statuses`, each with weekly children in the given statuses.

    Ids: root `lt-1`, months `m-<i>`, weeks `w-<i>-<j>` (1-based).
    """
    root = store.add_goal(Goal(
        id=root_id, patient_id=patient_id, tier=GoalTier.LONG_TERM,
        status=root_status, title="Independent community mobility",
    ))
    for i, weeks in enumerate(weekly_statuses, start=1):
        month_status = monthly_statuses[i - 1] if monthly_statuses else GoalStatus.ACTIVE
        store.add_goal(Goal(
            id=f"m-{i}", patient_id=patient_id, tier=GoalTier.MONTHLY,
            parent_id=root.id, sequence_number=i, status=month_status,
        ))
        for j, status in enumerate(weeks, start=1):
            store.add_goal(Goal(
                id=f"w-{i}-{j}", patient_id=patient_id, tier=GoalTier.WEEKLY,
                parent_id=f"m-{i}", sequence_number=j, status=status,
            ))
    return root


@pytest.fixture
def long_term_goal() -> Goal:
    """Six-month goal covering the first half of 2026."""
    return Goal(
        id="lt-1",
        patient_id="P-001",
        tier=GoalTier.LONG_TERM,
        title="Independent community mobility",
        description="Walk to the local market without assistance",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 6, 30),
        target_completion_rate=100,
        status=GoalStatus.ACTIVE,
        evaluation_criteria=EvaluationCriteria(extra={"measure": "6MWT distance"}),
    )


@pytest.fixture
def monthly_goal() -> Goal:
    """March 2026; March 1st is a Sunday."""
    return Goal(
        id="m-3",
        patient_id="P-001",
        tier=GoalTier.MONTHLY,
        parent_id="lt-1",
        sequence_number=3,
        title="Outdoor walking",
        start_date=date(2026, 3, 1),
        end_date=date(2026, 3, 31),
        target_completion_rate=16,
        status=GoalStatus.ACTIVE,
    )


@pytest.fixture
def store() -> InMemoryGoalStore:
    return InMemoryGoalStore()


@pytest.fixture
def archive() -> RecordingArchive:
    return RecordingArchive()


@pytest.fixture
def patients() -> RecordingPatients:
    return RecordingPatients()
