"""
Rehabilitation Goal Layer

Breaks long-term goals down into monthly and weekly goals, validates the
breakdown, suggests breakdown settings from a patient's history, and cascades
completion back up the tree.

Usage:
    from rehab_goals.core.goals import GoalBreakdownEngine, CascadeEvaluator

    result = GoalBreakdownEngine().decompose(goal, BreakdownConfig())
    outcome = CascadeEvaluator(store).on_status_changed(weekly_goal)
"""
from .base import (
    BreakdownSource,
    EvaluationCriteria,
    Goal,
    GoalPriority,
    GoalSpec,
    GoalStatus,
    GoalTier,
    Provenance,
)
from .breakdown import BreakdownConfig, BreakdownResult, GoalBreakdownEngine, HierarchyBreakdown
from .validation import BreakdownValidator, ValidationReport
from .suggestions import BreakdownSuggester, SuggestionSet
from .cascade import (
    CascadeAction,
    CascadeEvaluator,
    CascadeOutcome,
    CascadeReport,
    CascadeTermination,
    ProposedPromotion,
)
from .ports import ArchiveCollaborator, ConfirmationCollaborator, GoalStore, PatientRegistry

__all__ = [
    "BreakdownSource",
    "EvaluationCriteria",
    "Goal",
    "GoalPriority",
    "GoalSpec",
    "GoalStatus",
    "GoalTier",
    "Provenance",
    "BreakdownConfig",
    "BreakdownResult",
    "GoalBreakdownEngine",
    "HierarchyBreakdown",
    "BreakdownValidator",
    "ValidationReport",
    "BreakdownSuggester",
    "SuggestionSet",
    "CascadeAction",
    "CascadeEvaluator",
    "CascadeOutcome",
    "CascadeReport",
    "CascadeTermination",
    "ProposedPromotion",
    "ArchiveCollaborator",
    "ConfirmationCollaborator",
    "GoalStore",
    "PatientRegistry",
]
