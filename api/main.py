"""
FastAPI Backend for InstantSolve.

Serves the query pipeline to the chat UI: mode catalog, classification,
answers, stored chats and preferences.
"""

import logging

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from api.routes import ai
from instantsolve import __version__
from instantsolve.config import get_settings
from instantsolve.dispatcher import build_selector
from instantsolve.stores import ChatHistoryStore, SettingsStore
from instantsolve.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings = get_settings()
    setup_logging()

    logger.info("Starting InstantSolve API...")
    app.state.selector = build_selector(settings)
    app.state.chat_store = ChatHistoryStore(max_chats=settings.max_chats)
    app.state.settings_store = SettingsStore()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.selector.aclose()


app = FastAPI(
    title="InstantSolve API",
    description="Routes questions to the right language model and normalizes the answers",
    version=__version__,
    lifespan=lifespan,
)

# CORS - allow frontend to connect (configured via API_CORS_ORIGINS env var)
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# GZip compression for responses > 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(ai.router, prefix="/api/ai", tags=["ai"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__, "service": "InstantSolve API"}
