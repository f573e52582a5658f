"""
Rehabilitation Goals: Base Types

Defines the data contracts shared by the breakdown, validation, suggestion
and cascade engines, and by every goal store adapter.

Hierarchy:
    LONG_TERM (6-month horizon) → MONTHLY → WEEKLY (leaf)
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


class GoalTier(str, Enum):
    """
    Level of a goal in the rehabilitation hierarchy.

    LONG_TERM – six-month horizon, root of a goal tree
    MONTHLY   – one calendar month, child of a long-term goal
    WEEKLY    – one calendar week, leaf of the tree
    """
    LONG_TERM = "long_term"
    MONTHLY   = "monthly"
    WEEKLY    = "weekly"

    @property
    def child_tier(self) -> Optional["GoalTier"]:
        """Tier one step below, or None for leaves."""
        return _CHILD_TIER.get(self)

    @property
    def is_decomposable(self) -> bool:
        return self.child_tier is not None


_CHILD_TIER = {
    GoalTier.LONG_TERM: GoalTier.MONTHLY,
    GoalTier.MONTHLY:   GoalTier.WEEKLY,
}


class GoalStatus(str, Enum):
    """Lifecycle status. COMPLETED and CANCELLED are terminal."""
    PENDING   = "pending"
    ACTIVE    = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD   = "on_hold"

    @property
    def is_terminal(self) -> bool:
        return self in (GoalStatus.COMPLETED, GoalStatus.CANCELLED)


class GoalPriority(str, Enum):
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class BreakdownSource(str, Enum):
    """Which tier a generated child goal was split from."""
    LONG_TERM_GOAL = "long_term_goal"
    MONTHLY_GOAL   = "monthly_goal"


# ── Evaluation criteria ──────────────────────────────────────────────────────

_PROVENANCE_KEYS = ("breakdown_source", "original_goal_id", "auto_generated")


@dataclass
class Provenance:
    """Where an auto-generated goal came from."""
    breakdown_source: BreakdownSource
    original_goal_id: str
    auto_generated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "breakdown_source": self.breakdown_source.value,
            "original_goal_id": self.original_goal_id,
            "auto_generated": self.auto_generated,
        }


@dataclass
class EvaluationCriteria:
    """
    Evaluation metadata attached to a goal.

    Provenance fields are typed; anything else supplied by the caller lives in
    `extra` and is carried unchanged from parent to child.
    """
    provenance: Optional[Provenance] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def derive(self, provenance: Provenance) -> "EvaluationCriteria":
        """Shallow copy of the overlay with new provenance for a child goal."""
        return EvaluationCriteria(provenance=provenance, extra=dict(self.extra))

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        if self.provenance is not None:
            data.update(self.provenance.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EvaluationCriteria":
        if not data:
            return cls()
        data = dict(data)
        provenance = None
        if data.get("breakdown_source") and data.get("original_goal_id"):
            provenance = Provenance(
                breakdown_source=BreakdownSource(data["breakdown_source"]),
                original_goal_id=str(data["original_goal_id"]),
                auto_generated=bool(data.get("auto_generated", True)),
            )
        extra = {k: v for k, v in data.items() if k not in _PROVENANCE_KEYS}
        return cls(provenance=provenance, extra=extra)


# ── Goals ────────────────────────────────────────────────────────────────────

def parse_date(value: Any) -> Optional[date]:
    """Coerce None / date / datetime / ISO string into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class GoalSpec:
    """
    A goal that has not been persisted yet.

    Produced by the breakdown engine and handed to GoalStore.create_goals().
    """
    patient_id: str
    tier: GoalTier
    parent_id: Optional[str] = None
    sequence_number: int = 1
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_completion_rate: int = 100
    status: GoalStatus = GoalStatus.PENDING
    title: str = ""
    description: str = ""
    priority: GoalPriority = GoalPriority.MEDIUM
    category_id: Optional[str] = None
    created_by: Optional[str] = None
    evaluation_criteria: EvaluationCriteria = field(default_factory=EvaluationCriteria)

    def to_goal(self, goal_id: str) -> "Goal":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return Goal(id=goal_id, **values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "tier": self.tier.value,
            "parent_id": self.parent_id,
            "sequence_number": self.sequence_number,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "target_completion_rate": self.target_completion_rate,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "category_id": self.category_id,
            "created_by": self.created_by,
            "evaluation_criteria": self.evaluation_criteria.to_dict(),
        }


@dataclass
class Goal:
    """
    A persisted rehabilitation goal.

    Invariants:
      - tier is exactly one step below the parent's tier; LONG_TERM has no parent
      - sequence_number is 1-based and unique among siblings
      - start_date <= end_date, and both fall inside the parent's range
    """
    # ── Identity ──────────────────────────────────────────────────────────
    id: str
    patient_id: str
    tier: GoalTier
    parent_id: Optional[str] = None
    sequence_number: int = 1

    # ── Schedule ──────────────────────────────────────────────────────────
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    # ── Progress ──────────────────────────────────────────────────────────
    target_completion_rate: int = 100
    actual_completion_rate: int = 0
    status: GoalStatus = GoalStatus.PENDING
    completion_date: Optional[date] = None

    # ── Descriptive ───────────────────────────────────────────────────────
    title: str = ""
    description: str = ""
    priority: GoalPriority = GoalPriority.MEDIUM
    category_id: Optional[str] = None
    created_by: Optional[str] = None
    evaluation_criteria: EvaluationCriteria = field(default_factory=EvaluationCriteria)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply_patch(self, patch: Dict[str, Any]) -> "Goal":
        """Return a copy with the given (serialised or native) fields replaced."""
        unknown = set(patch) - {f.name for f in fields(self)}
        if unknown:
            raise KeyError(f"Unknown goal fields: {sorted(unknown)}")
        merged = self.to_dict()
        merged.update({k: _serialise(v) for k, v in patch.items()})
        return Goal.from_dict(merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "tier": self.tier.value,
            "parent_id": self.parent_id,
            "sequence_number": self.sequence_number,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "target_completion_rate": self.target_completion_rate,
            "actual_completion_rate": self.actual_completion_rate,
            "status": self.status.value,
            "completion_date": _iso(self.completion_date),
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "category_id": self.category_id,
            "created_by": self.created_by,
            "evaluation_criteria": self.evaluation_criteria.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        return cls(
            id=str(data["id"]),
            patient_id=str(data["patient_id"]),
            tier=GoalTier(data["tier"]),
            parent_id=data.get("parent_id"),
            sequence_number=int(data.get("sequence_number") or 1),
            start_date=parse_date(data.get("start_date")),
            end_date=parse_date(data.get("end_date")),
            target_completion_rate=int(data.get("target_completion_rate", 100)),
            actual_completion_rate=int(data.get("actual_completion_rate") or 0),
            status=GoalStatus(data.get("status", GoalStatus.PENDING.value)),
            completion_date=parse_date(data.get("completion_date")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            priority=GoalPriority(data.get("priority") or GoalPriority.MEDIUM.value),
            category_id=data.get("category_id"),
            created_by=data.get("created_by"),
            evaluation_criteria=EvaluationCriteria.from_dict(data.get("evaluation_criteria")),
        )


def _serialise(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, EvaluationCriteria):
        return value.to_dict()
    return value


def copy_goal(goal: Goal, **changes: Any) -> Goal:
    """dataclasses.replace() wrapper that also copies the criteria overlay."""
    criteria = changes.pop("evaluation_criteria", None) or EvaluationCriteria(
        provenance=goal.evaluation_criteria.provenance,
        extra=dict(goal.evaluation_criteria.extra),
    )
    return replace(goal, evaluation_criteria=criteria, **changes)
