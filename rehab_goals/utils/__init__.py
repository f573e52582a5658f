"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    GoalEngineError,
    BreakdownError,
    GoalStoreError,
    GoalNotFoundError,
    CascadeError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "GoalEngineError",
    "BreakdownError",
    "GoalStoreError",
    "GoalNotFoundError",
    "CascadeError",
]
