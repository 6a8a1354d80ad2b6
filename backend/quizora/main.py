# backend/quizora/main.py
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

# import your routers
from quizora.api.v1 import auth, modules, questions, quizzes, results, users
from quizora.core.config import settings
from quizora.core.errors import AppError
from quizora.core.log import configure_logging
from quizora.core.responses import error_response, success_response

# import DB Base so we can create tables on startup
from quizora.db.session import Base, SessionLocal, engine
from quizora.services.scheduler import QuizStatusScheduler

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Quizora API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------- error handlers --------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.message, exc.status_code, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return error_response("Validation failed", 422, errors)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("[api] integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response("Duplicate value violates a unique constraint", 409)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code)


@app.exception_handler(Exception)
async def all_exception_handler(request: Request, exc: Exception):
    logger.exception("[api] unhandled exception during %s %s", request.method, request.url.path)
    message = "Internal server error" if settings.is_production else f"Internal server error: {exc}"
    return error_response(message, 500)


# include routers under /api/v1
for api_module in (auth, users, modules, questions, quizzes, results):
    app.include_router(api_module.router, prefix="/api/v1")


@app.get("/api/v1/health")
def health():
    scheduler = getattr(app.state, "scheduler", None)
    return success_response({
        "environment": settings.ENVIRONMENT,
        "scheduler": scheduler.status() if scheduler else {"running": False},
    }, "OK")


@app.on_event("startup")
async def startup_event():
    # create tables that do not exist yet
    Base.metadata.create_all(bind=engine)
    logger.info("[startup] database tables created/checked")

    if settings.SCHEDULER_ENABLED:
        app.state.scheduler = QuizStatusScheduler(SessionLocal, settings.SCHEDULER_INTERVAL_SECONDS)
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        await scheduler.stop()


def run():
    """Serve the app with uvicorn (installed as the ``quizora-server`` command)."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
