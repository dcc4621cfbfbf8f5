import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import ErrorKind, TaskApiError
from .logging_setup import setup_logging
from .routers import tasks as tasks_router
from .settings import get_settings

_settings = get_settings()
setup_logging(_settings.log_level)

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD, state transitions, filtered queries, statistics and bulk operations for tasks.",
    },
]

app = FastAPI(
    title="Task Tracker",
    description="Backend API service for tracking to-do tasks with priorities.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS from the CORS_ALLOW_ORIGINS environment variable, with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message})


@app.exception_handler(TaskApiError)
async def task_error_handler(request: Request, exc: TaskApiError) -> JSONResponse:
    """
    Render a manager error as {"code", "message"}: 404 TASK_NOT_FOUND or 400 BAD_REQUEST.
    """
    return _error_response(exc.error.status_code, exc.error.kind.value, exc.error.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return request validation failures (bad body, path or query values) as 400 BAD_REQUEST.
    """
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid value')}"
    else:
        message = "Request validation failed"
    return _error_response(400, ErrorKind.VALIDATION.value, message)


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Any other failure becomes a generic 500 without internal details.
    """
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "INTERNAL_ERROR", "Unexpected server error")


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(tasks_router.router)
