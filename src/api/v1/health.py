from fastapi import APIRouter

from core.config import get_settings
from schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str]])
def health_check() -> ApiResponse[dict[str, str]]:
    """Health check endpoint for monitoring and load balancer health checks."""
    return ApiResponse(
        success=True,
        data={
            "status": "healthy",
            "message": f"{get_settings().APP_NAME} is running",
        },
        message="Health check successful",
    )
