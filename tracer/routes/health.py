from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tracer.config import settings
from tracer.db import db_ping
from tracer.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok", "env": settings.app_env}

@router.get("/ready")
def ready() -> JSONResponse:
    pings = {"db": db_ping}
    # redis only matters while notifications are switched on
    if settings.notifications_enabled:
        pings["redis"] = redis_ping

    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}
    for name, ping in pings.items():
        ok, error = ping()
        checks[name] = ok
        if error:
            errors[name] = error

    all_ok = all(checks.values())
    body: dict = {"status": "ok" if all_ok else "unready", "checks": checks}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=200 if all_ok else 503, content=body)
