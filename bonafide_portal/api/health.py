"""
Bonafide Portal — Health endpoint
"""
import asyncio
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from bonafide_portal.api.deps import get_identity_provider
from bonafide_portal.core.config import get_settings
from bonafide_portal.core.redis_client import get_redis
from bonafide_portal.schemas.base import HealthResponse
from bonafide_portal.services.identity import IdentityProvider

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(identity: IdentityProvider = Depends(get_identity_provider)):
    """
    Deep health check — verifies the identity database and Redis.
    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    deps: dict[str, str] = {}
    healthy = True

    # Check identity DB
    try:
        await asyncio.wait_for(identity.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["identity_db"] = "ok"
    except Exception as e:
        deps["identity_db"] = f"error: {str(e)[:100]}"
        healthy = False

    # Check Redis
    try:
        redis = get_redis()
        await asyncio.wait_for(redis.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["redis"] = "ok"
    except Exception as e:
        deps["redis"] = f"error: {str(e)[:100]}"
        healthy = False

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )

    return JSONResponse(
        content=response.model_dump(),
        status_code=200 if healthy else 503,
    )
