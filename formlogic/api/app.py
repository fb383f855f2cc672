"""
FastAPI application factory for formlogic.

Creates and configures the FastAPI app, the form session store, and
routes.

Run with:
    uvicorn formlogic.api.app:app --reload
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formlogic.api.routes import configure_routes, router
from formlogic.core.session import DEFAULT_SESSION_TIMEOUT_SECONDS, SessionStore

# Load environment variables from .env
load_dotenv()

# Logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    application = FastAPI(
        title="formlogic",
        description="Conditional field visibility for data-entry forms",
        version="0.1.0",
    )

    # CORS: allow all origins unless restricted
    allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    session_timeout = int(os.getenv("SESSION_TIMEOUT_SECONDS", str(DEFAULT_SESSION_TIMEOUT_SECONDS)))
    session_store = SessionStore(timeout_seconds=session_timeout)

    configure_routes(session_store)
    application.include_router(router, prefix="/api")

    logger.info("formlogic app created (session timeout: %d seconds)", session_timeout)
    return application


# Create the app instance (used by uvicorn)
app = create_app()
