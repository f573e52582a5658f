"""
Rehabilitation Goals - FastAPI Application

Main application entry point with API endpoints for:
- Long-term goal creation and lookup
- Goal breakdown (preview, apply, smart suggestions)
- Weekly check-ins and status changes with completion cascade
- Confirmation of proposed parent completions
"""
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rehab_goals import __version__
from rehab_goals.config import settings
from rehab_goals.core.goals import Goal, GoalTier
from rehab_goals.models.schemas import (
    BreakdownRequest,
    BreakdownResponse,
    CheckInRequest,
    ConfirmationRequest,
    GoalCreateRequest,
    GoalResponse,
    HealthResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    SuggestionRequest,
)
from rehab_goals.services.goal_service import GoalService
from rehab_goals.utils import (
    get_logger,
    setup_logging,
    BreakdownError,
    CascadeError,
    GoalEngineError,
    GoalNotFoundError,
    GoalStoreError,
)

logger = get_logger(__name__)

_STATUS_BY_ERROR = [
    (GoalNotFoundError, 404),
    (BreakdownError, 422),
    (CascadeError, 409),
    (GoalStoreError, 500),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_file)
    logger.info(f"Rehabilitation Goals API {settings.app_version} ready to accept requests")
    yield
    logger.info("Rehabilitation Goals API shut down.")


# ---- FastAPI Application ----

app = FastAPI(
    title="Rehabilitation Goals API",
    description="Goal breakdown and completion cascade for rehabilitation case management",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- In-memory service (swap the store for a database adapter in production) ----
_service = GoalService()


@app.exception_handler(GoalEngineError)
async def goal_engine_error_handler(request: Request, exc: GoalEngineError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.error(f"{request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ---- API Endpoints ----

@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """API root - health check."""
    return HealthResponse(status="healthy", version=settings.app_version, goal_count=len(_service.store))


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=settings.app_version, goal_count=len(_service.store))


@app.post("/api/v1/goals", response_model=GoalResponse, status_code=201, tags=["Goals"])
async def create_goal(request: GoalCreateRequest):
    """Create a long-term (six-month) goal for a patient."""
    goal = _service.create_long_term_goal(request.to_spec())
    return GoalResponse.from_goal(goal)


@app.get("/api/v1/goals/{goal_id}", response_model=GoalResponse, tags=["Goals"])
async def get_goal(goal_id: str):
    return GoalResponse.from_goal(_service.get_goal(goal_id))


@app.get("/api/v1/goals/{goal_id}/children", response_model=List[GoalResponse], tags=["Goals"])
async def get_children(goal_id: str):
    return [GoalResponse.from_goal(g) for g in _service.get_children(goal_id)]


@app.post("/api/v1/goals/{goal_id}/breakdown/preview", tags=["Breakdown"])
async def preview_breakdown(goal_id: str, request: BreakdownRequest):
    """
    Show the child goals a breakdown would create, with validation issues.
    Nothing is saved.
    """
    result, report = _service.preview_breakdown(goal_id, request.to_config())
    return {
        "goal_id": goal_id,
        "breakdown": result.to_dict(),
        "validation": report.to_dict(),
    }


@app.post("/api/v1/goals/{goal_id}/breakdown", response_model=BreakdownResponse, status_code=201, tags=["Breakdown"])
async def apply_breakdown(goal_id: str, request: BreakdownRequest):
    """Split a goal into the next tier (or two tiers) and save the children."""
    created = _service.apply_breakdown(goal_id, request.to_config(), full_hierarchy=request.full_hierarchy)
    return BreakdownResponse(goal_id=goal_id, created=[GoalResponse.from_goal(g) for g in created])


@app.post("/api/v1/goals/{goal_id}/suggestions", tags=["Breakdown"])
async def suggest_breakdown(goal_id: str, request: SuggestionRequest):
    """Suggest breakdown settings from the patient's goal history."""
    history = None
    if request.history_statuses is not None:
        goal = _service.get_goal(goal_id)
        history = [_history_goal(goal.patient_id, goal.tier, status) for status in request.history_statuses]
    return _service.suggest(goal_id, history).to_dict()


@app.post("/api/v1/goals/{goal_id}/check-in", response_model=StatusChangeResponse, tags=["Progress"])
async def check_in(goal_id: str, request: CheckInRequest):
    """Record a weekly check-in and evaluate the completion cascade."""
    goal, report = await _service.check_in(goal_id, request.result)
    return StatusChangeResponse(goal=GoalResponse.from_goal(goal), cascade=report.to_dict())


@app.post("/api/v1/goals/{goal_id}/status", response_model=StatusChangeResponse, tags=["Progress"])
async def change_status(goal_id: str, request: StatusChangeRequest):
    goal, report = await _service.change_status(goal_id, request.status)
    return StatusChangeResponse(goal=GoalResponse.from_goal(goal), cascade=report.to_dict())


@app.post("/api/v1/goals/{goal_id}/confirm-completion", tags=["Progress"])
async def confirm_completion(goal_id: str, request: ConfirmationRequest):
    """Answer a pending parent-completion proposal."""
    report = await _service.confirm_completion(goal_id, request.confirmed)
    return report.to_dict()


@app.get("/api/v1/patients/{patient_id}/pending-confirmations", tags=["Progress"])
async def pending_confirmations(patient_id: str):
    return {
        "patient_id": patient_id,
        "needs_new_goal": _service.patients.needs_new_goal(patient_id),
        "pending": [p.to_dict() for p in _service.pending_confirmations(patient_id)],
    }


def _history_goal(patient_id: str, tier: GoalTier, status) -> Goal:
    return Goal(id=f"history-{uuid.uuid4()}", patient_id=patient_id, tier=tier, status=status)


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
