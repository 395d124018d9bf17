"""Main FastAPI application for the recurring task engine."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from recurring_engine.db.init import init_db
from recurring_engine.middleware.cors import add_cors_middleware
from recurring_engine.routers import tasks
from recurring_engine.services.errors import RecurrenceError, create_error_response
from recurring_engine.utils.logger import get_logger
from recurring_engine.utils.metrics import metrics_collector

logger = get_logger("recurring-engine.api")

# Engine error codes mapped onto HTTP status codes
ERROR_STATUS_CODES = {
    "INVALID_RULE": 422,
    "INVALID_STATUS": 422,
    "VALIDATION_ERROR": 422,
    "NOT_FOUND": 404,
    "AMBIGUOUS_PARENT": 409,
    "PERSISTENCE_FAILURE": 503,
}

# Create FastAPI application
app = FastAPI(
    title="Recurring Task Engine API",
    description="REST API for recurring task series: completion, skipping and iteration previews",
    version="1.0.0",
)

# Add CORS middleware
add_cors_middleware(app)


@app.exception_handler(RecurrenceError)
async def recurrence_error_handler(request: Request, exc: RecurrenceError):
    """Render engine errors in the standard error envelope."""
    status_code = ERROR_STATUS_CODES.get(exc.code, 400)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("request_rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=status_code, content=create_error_response(exc))


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    try:
        init_db()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            hint="check DATABASE_URL; database operations may fail",
        )
    logger.info("application_started")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/metrics")
async def get_metrics():
    """Engine counters since process start."""
    return metrics_collector.get_metrics()


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the Recurring Task Engine API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(tasks.router, prefix="/api")  # Task endpoints: /api/tasks


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "recurring_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
