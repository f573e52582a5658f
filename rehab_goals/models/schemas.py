"""
API request/response models for the goal endpoints.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from rehab_goals.core.goals import (
    BreakdownConfig,
    EvaluationCriteria,
    Goal,
    GoalPriority,
    GoalSpec,
    GoalStatus,
    GoalTier,
)
from rehab_goals.services.goal_service import CheckInResult


class HealthResponse(BaseModel):
    status: str
    version: str
    goal_count: int


class GoalCreateRequest(BaseModel):
    """A new long-term (six-month) goal."""
    patient_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    start_date: date
    end_date: date
    target_completion_rate: int = Field(100, ge=0, le=100)
    priority: GoalPriority = GoalPriority.MEDIUM
    category_id: Optional[str] = None
    created_by: Optional[str] = None
    evaluation_criteria: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def to_spec(self) -> GoalSpec:
        return GoalSpec(
            patient_id=self.patient_id,
            tier=GoalTier.LONG_TERM,
            start_date=self.start_date,
            end_date=self.end_date,
            target_completion_rate=self.target_completion_rate,
            status=GoalStatus.ACTIVE,
            title=self.title,
            description=self.description,
            priority=self.priority,
            category_id=self.category_id,
            created_by=self.created_by,
            evaluation_criteria=EvaluationCriteria.from_dict(self.evaluation_criteria),
        )


class GoalResponse(BaseModel):
    id: str
    patient_id: str
    tier: GoalTier
    parent_id: Optional[str] = None
    sequence_number: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_completion_rate: int
    actual_completion_rate: int
    status: GoalStatus
    completion_date: Optional[date] = None
    title: str
    description: str
    priority: GoalPriority
    category_id: Optional[str] = None
    created_by: Optional[str] = None
    evaluation_criteria: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_goal(cls, goal: Goal) -> "GoalResponse":
        return cls(**goal.to_dict())


class BreakdownRequest(BaseModel):
    child_count: Optional[int] = Field(None, ge=1, le=12)
    distribute_progress_evenly: bool = True
    include_buffer_time: bool = False
    preserve_original_dates: bool = False
    full_hierarchy: bool = False

    def to_config(self) -> BreakdownConfig:
        return BreakdownConfig(
            child_count=self.child_count,
            distribute_progress_evenly=self.distribute_progress_evenly,
            include_buffer_time=self.include_buffer_time,
            preserve_original_dates=self.preserve_original_dates,
        )


class BreakdownResponse(BaseModel):
    goal_id: str
    created: List[GoalResponse]


class SuggestionRequest(BaseModel):
    """Optional explicit history; when omitted the patient's stored goals are used."""
    history_statuses: Optional[List[GoalStatus]] = None


class CheckInRequest(BaseModel):
    result: CheckInResult


class StatusChangeRequest(BaseModel):
    status: GoalStatus


class ConfirmationRequest(BaseModel):
    confirmed: bool


class StatusChangeResponse(BaseModel):
    goal: GoalResponse
    cascade: Dict[str, Any]
