"""
Custom Exception Hierarchy

Provides specific exception types for the goal engine's error categories
with structured error information.
"""
from typing import Optional, Dict, Any


class GoalEngineError(Exception):
    """Base exception for all goal engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class BreakdownError(GoalEngineError):
    """Input errors while splitting a goal into the next tier."""

    def __init__(
        self,
        message: str,
        goal_id: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="BREAKDOWN_ERROR",
            details={"goal_id": goal_id, **(details or {})}
        )
        self.goal_id = goal_id


class GoalStoreError(GoalEngineError):
    """Read or write failures reported by a goal store adapter."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="STORE_ERROR",
            details={"operation": operation, **(details or {})}
        )
        self.operation = operation


class GoalNotFoundError(GoalEngineError):
    """A referenced goal does not exist in the store."""

    def __init__(
        self,
        goal_id: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Goal {goal_id} not found",
            code="GOAL_NOT_FOUND",
            details={"goal_id": goal_id, **(details or {})}
        )
        self.goal_id = goal_id


class CascadeError(GoalEngineError):
    """Errors while propagating completion up the goal tree."""

    def __init__(
        self,
        message: str,
        goal_id: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="CASCADE_ERROR",
            details={"goal_id": goal_id, **(details or {})}
        )
        self.goal_id = goal_id
