"""API endpoints for running and inspecting background jobs."""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from core.exceptions import UnknownJobError
from core.security import SCOPE_JOBS_RUN
from crud.bot_state import get_bot_state
from dependencies.auth import require_scope
from dependencies.db import DbSession
from jobs.daily_learn import JOB_NAME, run_daily_learn
from schemas.api import ApiResponse
from schemas.auth import Principal
from schemas.jobs import DailyLearnRunOut, JobStatusOut
from services.safe_fetch import SafeFetcher

from .tools import get_fetcher


router = APIRouter(prefix="/jobs", tags=["jobs"])

KNOWN_JOBS = {JOB_NAME}


@router.post(
    "/daily-learn/run",
    summary="Run the daily learning job now",
    response_model=ApiResponse[DailyLearnRunOut],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Missing jobs:run scope"},
    },
)
async def run_daily_learn_now(
    db: DbSession,
    fetcher: Annotated[SafeFetcher, Depends(get_fetcher)],
    _principal: Annotated[Principal, Depends(require_scope(SCOPE_JOBS_RUN))],
) -> ApiResponse[DailyLearnRunOut]:
    result = await run_daily_learn(db, fetcher)
    return ApiResponse(
        success=result.success,
        data=DailyLearnRunOut.model_validate(result, from_attributes=True),
        message=(
            "Daily learning completed"
            if result.success
            else "Daily learning completed with errors"
        ),
    )


@router.get(
    "/{job_name}/status",
    summary="Get the last recorded state of a job",
    response_model=ApiResponse[JobStatusOut],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Missing jobs:run scope"},
        404: {"description": "Unknown job"},
    },
)
async def get_job_status(
    job_name: str,
    db: DbSession,
    _principal: Annotated[Principal, Depends(require_scope(SCOPE_JOBS_RUN))],
) -> ApiResponse[JobStatusOut]:
    if job_name not in KNOWN_JOBS:
        raise UnknownJobError(f"Unknown job: {job_name}")

    state = await get_bot_state(db, job_name)
    if state is None:
        return ApiResponse(
            data=JobStatusOut(job_name=job_name), message="Job has not run yet"
        )

    summary: dict[str, Any] = json.loads(state.notes_json or "{}")
    return ApiResponse(
        data=JobStatusOut(
            job_name=job_name, last_run_at=state.last_learned_at, summary=summary
        ),
        message="Job status retrieved successfully",
    )
