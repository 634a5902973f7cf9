from typing import Annotated, Any

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, Any]])
def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[dict[str, Any]]:
    """Health check endpoint for monitoring and load balancer health checks.

    Reports the configured provider only; upstream reachability is not probed
    because the stream falls back locally when the provider is down.
    """
    return ApiResponse(
        success=True,
        data={
            "status": "healthy",
            "message": f"{settings.APP_NAME} API is running",
            "version": settings.APP_VERSION,
            "provider": settings.LLM_PROVIDER,
            "features": {
                "streaming": True,
                "local_fallback": True,
                "locales": ["vi", "en"],
            },
        },
        message="Health check successful",
    )
