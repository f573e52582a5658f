"""
Goal archive and patient registry used by the HTTP service.

Archiving copies a completed long-term goal tree out as a snapshot; the
goals stay in the store. The patient registry tracks which patients need a
new long-term goal after their last one was completed.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from rehab_goals.core.goals.ports import ArchiveCollaborator, PatientRegistry
from rehab_goals.utils import get_logger, GoalNotFoundError
from .goal_store import InMemoryGoalStore

logger = get_logger(__name__)


@dataclass
class ArchivedGoalTree:
    root_goal_id: str
    patient_id: str
    archived_at: datetime
    goals: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def completed_weekly_count(self) -> int:
        return sum(
            1 for g in self.goals
            if g["tier"] == "weekly" and g["status"] == "completed"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_goal_id": self.root_goal_id,
            "patient_id": self.patient_id,
            "archived_at": self.archived_at.isoformat(),
            "goal_count": len(self.goals),
            "completed_weekly_count": self.completed_weekly_count,
            "goals": self.goals,
        }


class GoalTreeArchive(ArchiveCollaborator):
    """Snapshots goal trees from an InMemoryGoalStore. Re-archiving replaces the snapshot."""

    def __init__(self, store: InMemoryGoalStore):
        self.store = store
        self._lock = threading.Lock()
        self._archives: Dict[str, ArchivedGoalTree] = {}

    def archive_goal_tree(self, root_goal_id: str) -> None:
        tree = self.store.fetch_tree(root_goal_id)
        if not tree:
            raise GoalNotFoundError(root_goal_id)
        snapshot = ArchivedGoalTree(
            root_goal_id=root_goal_id,
            patient_id=tree[0].patient_id,
            archived_at=datetime.now(timezone.utc),
            goals=[g.to_dict() for g in tree],
        )
        with self._lock:
            self._archives[root_goal_id] = snapshot
        logger.info(f"GoalTreeArchive: archived goal {root_goal_id} ({len(tree)} goal(s))")

    def get(self, root_goal_id: str) -> Optional[ArchivedGoalTree]:
        with self._lock:
            return self._archives.get(root_goal_id)

    def for_patient(self, patient_id: str) -> List[ArchivedGoalTree]:
        with self._lock:
            return [a for a in self._archives.values() if a.patient_id == patient_id]


class InMemoryPatientRegistry(PatientRegistry):

    def __init__(self):
        self._needs_new_goal: Set[str] = set()

    def mark_needs_new_goal(self, patient_id: str) -> None:
        self._needs_new_goal.add(patient_id)
        logger.info(f"InMemoryPatientRegistry: patient {patient_id} needs a new goal")

    def clear(self, patient_id: str) -> None:
        self._needs_new_goal.discard(patient_id)

    def needs_new_goal(self, patient_id: str) -> bool:
        return patient_id in self._needs_new_goal
