"""CORS configuration for the recurring task API."""
from fastapi.middleware.cors import CORSMiddleware
import logging

from recurring_engine.config import ENVIRONMENT, FRONTEND_URL

logger = logging.getLogger(__name__)

# Base allowed origins for development
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

# Add production frontend URL if provided
if FRONTEND_URL and FRONTEND_URL not in ALLOWED_ORIGINS:
    ALLOWED_ORIGINS.append(FRONTEND_URL)


def add_cors_middleware(app):
    """Add CORS middleware to the FastAPI application."""
    origins = [FRONTEND_URL] if ENVIRONMENT == "production" else ALLOWED_ORIGINS
    logger.info(f"CORS origins for {ENVIRONMENT}: {origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
