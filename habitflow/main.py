import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from habitflow import __version__
from habitflow.config import CORS_ORIGINS, DEMO_USER_ENABLED, ENVIRONMENT, IS_PRODUCTION, SCHEDULER_ENABLED
from habitflow.database import SessionLocal, init_db
from habitflow.logging_config import setup_logging
from habitflow.routes.ai_routes import router as ai_router
from habitflow.routes.auth_routes import router as auth_router
from habitflow.routes.habit_routes import router as habit_router
from habitflow.routes.notification_routes import reminders_router
from habitflow.routes.notification_routes import router as notification_router
from habitflow.routes.nudge_routes import router as nudge_router
from habitflow.routes.stats_routes import router as stats_router
from habitflow.routes.ws_routes import router as ws_router
from habitflow.services.provisioning import ensure_demo_user
from habitflow.services.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting HabitFlow API v%s (%s)", __version__, ENVIRONMENT)

    # An unreachable database aborts startup
    init_db()
    if DEMO_USER_ENABLED:
        db = SessionLocal()
        try:
            ensure_demo_user(db)
        finally:
            db.close()

    if SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info("HabitFlow API stopped")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app() -> FastAPI:
    app = FastAPI(title="HabitFlow API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/api/health-check")
    async def health():
        return {"status": "ok", "message": "Backend is alive!", "version": __version__}

    app.include_router(auth_router)
    app.include_router(habit_router)
    app.include_router(stats_router)
    app.include_router(nudge_router)
    app.include_router(ai_router)
    app.include_router(notification_router)
    app.include_router(reminders_router)
    app.include_router(ws_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("habitflow.main:app", host="0.0.0.0", port=8000, reload=not IS_PRODUCTION)
