from fastapi import APIRouter, Depends

from core.ratelimit import check_rate_limit

from .health import router as health_router
from .jobs import router as jobs_router
from .knowledge_sources import router as knowledge_sources_router
from .tools import router as tools_router


# Public API router (health)
api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])


# Protected routers authenticate per route (each needs its own scope) and
# share the rate limit dependency.
limited_deps = [Depends(check_rate_limit)]
api_router.include_router(tools_router, dependencies=limited_deps)
api_router.include_router(jobs_router, dependencies=limited_deps)
api_router.include_router(knowledge_sources_router, dependencies=limited_deps)
