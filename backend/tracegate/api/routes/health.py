"""Health Probe — liveness endpoint for container orchestration.

Invariants:
    - GET /api/v1/health/ always returns 200 if the process is up
"""

from fastapi import APIRouter, Request, status

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": request.app.state.settings.service_name,
        "version": request.app.version,
    }
