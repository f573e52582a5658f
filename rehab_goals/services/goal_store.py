"""
In-memory goal store.

Reference GoalStore used by the HTTP service and the test-suite. A hosted
database adapter implements the same port for production.
"""
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional

from rehab_goals.core.goals.base import Goal, GoalSpec, GoalStatus, GoalTier, copy_goal
from rehab_goals.core.goals.ports import GoalStore
from rehab_goals.utils import get_logger, GoalNotFoundError, GoalStoreError

logger = get_logger(__name__)


class InMemoryGoalStore(GoalStore):
    """
    Dict-backed goal rows.

    Returned goals are copies; mutate only through update_goal().
    """

    def __init__(self, goals: Optional[Iterable[Goal]] = None):
        self._lock = threading.RLock()
        self._goals: Dict[str, Goal] = {}
        for goal in goals or []:
            self._goals[goal.id] = copy_goal(goal)

    def __len__(self) -> int:
        return len(self._goals)

    def fetch_goal(self, goal_id: str) -> Optional[Goal]:
        with self._lock:
            goal = self._goals.get(goal_id)
            return copy_goal(goal) if goal else None

    def fetch_children(self, parent_id: str) -> List[Goal]:
        with self._lock:
            children = [g for g in self._goals.values() if g.parent_id == parent_id]
            return [copy_goal(g) for g in sorted(children, key=lambda g: g.sequence_number)]

    def fetch_siblings(self, parent_id: str) -> List[Goal]:
        return self.fetch_children(parent_id)

    def create_goals(self, specs: List[GoalSpec]) -> List[Goal]:
        created = []
        with self._lock:
            for spec in specs:
                goal = spec.to_goal(str(uuid.uuid4()))
                self._goals[goal.id] = goal
                created.append(copy_goal(goal))
        logger.debug(f"InMemoryGoalStore: created {len(created)} goal(s)")
        return created

    def add_goal(self, goal: Goal) -> Goal:
        """Insert a fully formed goal (e.g. a root goal with a known id)."""
        with self._lock:
            if goal.id in self._goals:
                raise GoalStoreError(
                    f"Goal {goal.id} already exists", operation="add_goal",
                    details={"goal_id": goal.id},
                )
            self._goals[goal.id] = copy_goal(goal)
            return copy_goal(goal)

    def update_goal(self, goal_id: str, patch: Dict[str, Any]) -> Goal:
        with self._lock:
            current = self._goals.get(goal_id)
            if current is None:
                raise GoalNotFoundError(goal_id)
            try:
                updated = current.apply_patch(patch)
            except (KeyError, ValueError) as exc:
                raise GoalStoreError(
                    f"Invalid update for goal {goal_id}: {exc}",
                    operation="update_goal",
                    details={"goal_id": goal_id},
                ) from exc
            self._goals[goal_id] = updated
            return copy_goal(updated)

    def fetch_goals_by_patient_and_tier(
        self,
        patient_id: str,
        tier: GoalTier,
        status_filter: Optional[Iterable[GoalStatus]] = None,
    ) -> List[Goal]:
        statuses = set(status_filter) if status_filter is not None else None
        with self._lock:
            return [
                copy_goal(g) for g in self._goals.values()
                if g.patient_id == patient_id
                and g.tier == tier
                and (statuses is None or g.status in statuses)
            ]

    def fetch_tree(self, root_id: str) -> List[Goal]:
        """Root followed by all of its descendants, breadth first."""
        with self._lock:
            root = self._goals.get(root_id)
            if root is None:
                return []
            tree, frontier = [copy_goal(root)], [root_id]
            while frontier:
                children = [c for pid in frontier for c in self.fetch_children(pid)]
                tree.extend(children)
                frontier = [c.id for c in children]
            return tree
