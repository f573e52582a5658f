"""
Outbound ports consumed by the goal engines.

Adapters implement these against the hosted database, the UI confirmation
dialog, the archive service and the patient registry.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Dict, Iterable, List, Optional, Union

from .base import Goal, GoalSpec, GoalStatus, GoalTier

if TYPE_CHECKING:
    from .cascade import ProposedPromotion


class GoalStore(ABC):
    """
    Row store for goal records.

    Implementations raise GoalStoreError on read/write failure. Missing rows
    are reported as None / empty lists, not as errors.
    """

    @abstractmethod
    def fetch_goal(self, goal_id: str) -> Optional[Goal]:
        ...

    @abstractmethod
    def fetch_children(self, parent_id: str) -> List[Goal]:
        ...

    @abstractmethod
    def fetch_siblings(self, parent_id: str) -> List[Goal]:
        ...

    @abstractmethod
    def create_goals(self, specs: List[GoalSpec]) -> List[Goal]:
        ...

    @abstractmethod
    def update_goal(self, goal_id: str, patch: Dict[str, Any]) -> Goal:
        ...

    @abstractmethod
    def fetch_goals_by_patient_and_tier(
        self,
        patient_id: str,
        tier: GoalTier,
        status_filter: Optional[Iterable[GoalStatus]] = None,
    ) -> List[Goal]:
        """Goals of one patient and tier; status_filter lists statuses to include."""
        ...


class ConfirmationCollaborator(ABC):
    """Asks a person whether a proposed parent completion should be applied."""

    @abstractmethod
    def request_confirmation(
        self, proposal: "ProposedPromotion"
    ) -> Union[Optional[bool], Awaitable[Optional[bool]]]:
        """True applies, False declines, None means no answer (cascade halts)."""
        ...


class ArchiveCollaborator(ABC):

    @abstractmethod
    def archive_goal_tree(self, root_goal_id: str) -> None:
        ...


class PatientRegistry(ABC):

    @abstractmethod
    def mark_needs_new_goal(self, patient_id: str) -> None:
        """Reset the patient record so staff are prompted to set a new goal."""
        ...
