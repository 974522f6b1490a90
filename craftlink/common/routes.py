from fastapi import APIRouter, Request, status
from craftlink.common.logging_setup import get_logger
from craftlink.common.utils import now, success_response

logger = get_logger("craftlink.health")

home_router = APIRouter()


@home_router.get("/health")
async def health_check(request: Request):
    settings = request.app.state.settings
    return success_response({
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "timestamp": now().isoformat(),
    })


@home_router.get("/health/detailed")
async def health_detailed(request: Request):
    store = request.app.state.store
    settings = request.app.state.settings

    checks = {"database": "ok"}
    try:
        await store.ping()
    except Exception as exc:
        logger.error("health.database.unreachable", extra={"error": str(exc)})
        checks["database"] = "unavailable"

    healthy = all(v == "ok" for v in checks.values())
    body = {
        "status": "healthy" if healthy else "degraded",
        "service": settings.SERVICE_NAME,
        "env": settings.ENV,
        "timestamp": now().isoformat(),
        "checks": checks,
    }
    return success_response(body, status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE)
