"""API endpoints for managing knowledge sources."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from core.security import SCOPE_JOBS_RUN
from crud.knowledge_sources import create_source, list_sources
from dependencies.auth import require_scope
from dependencies.db import DbSession
from schemas.api import ApiResponse
from schemas.auth import Principal
from schemas.knowledge_sources import KnowledgeSourceCreate, KnowledgeSourceOut


router = APIRouter(prefix="/knowledge-sources", tags=["knowledge-sources"])


@router.get(
    "",
    summary="List knowledge sources",
    response_model=ApiResponse[list[KnowledgeSourceOut]],
)
async def get_knowledge_sources(
    db: DbSession,
    _principal: Annotated[Principal, Depends(require_scope(SCOPE_JOBS_RUN))],
) -> ApiResponse[list[KnowledgeSourceOut]]:
    sources = await list_sources(db)
    return ApiResponse(
        data=[KnowledgeSourceOut.model_validate(s) for s in sources],
        message="Knowledge sources retrieved successfully",
    )


@router.post(
    "",
    summary="Create a knowledge source",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[KnowledgeSourceOut],
    responses={409: {"description": "A source with this name already exists"}},
)
async def create_knowledge_source(
    payload: KnowledgeSourceCreate,
    db: DbSession,
    _principal: Annotated[Principal, Depends(require_scope(SCOPE_JOBS_RUN))],
) -> ApiResponse[KnowledgeSourceOut]:
    source = await create_source(
        db,
        name=payload.name,
        url=payload.url,
        enabled=payload.enabled,
        fetch_interval_hours=payload.fetch_interval_hours,
    )
    return ApiResponse(
        data=KnowledgeSourceOut.model_validate(source),
        message="Knowledge source created successfully",
    )
