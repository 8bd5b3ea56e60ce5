import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tracer.config import settings
from tracer.errors import Forbidden, TracerError
from tracer.log import setup_logging
from tracer.routes.health import router as health_router
from tracer.routes.projects import router as projects_router
from tracer.routes.tasks import router as tasks_router
from tracer.routes.users import router as users_router

logger = logging.getLogger(__name__)

async def tracer_error_handler(request: Request, exc: TracerError) -> JSONResponse:
    body: dict = {"detail": exc.detail}
    if isinstance(exc, Forbidden):
        body["reason"] = exc.reason.value

    if exc.status_code >= 500:
        logger.error("unhandled core error: %s", exc.detail)
    else:
        logger.info(
            "request rejected",
            extra={"fields": {"path": request.url.path, "status": exc.status_code, "error": type(exc).__name__}},
        )
    return JSONResponse(status_code=exc.status_code, content=body)

def create_app() -> FastAPI:
    setup_logging(debug=settings.debug, json_logs=settings.json_logs)

    app = FastAPI(title="tracer-core", version="0.1.0")
    app.add_exception_handler(TracerError, tracer_error_handler)
    app.include_router(health_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    app.include_router(users_router)
    return app

app = create_app()
