"""FastAPI application entry point.

Startup sequence: load .env -> read settings -> build event sinks -> build the
translation app (resolves the API key and creates the service).
"""

from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from translater.agent.app import TranslaterApp
from translater.api.routes import router
from translater.core.capture import MssCapture
from translater.core.events import BroadcastEventSink, LogEventSink, MultiEventSink
from translater.core.settings import Settings

load_dotenv()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("startup.begin")

    settings = Settings.from_env()
    logger.info("startup.settings_loaded", base_url=settings.api_base_url,
                translate_model=settings.translate_model, vision_model=settings.vision_model,
                vision_direct=settings.use_vision_for_translation,
                stream=settings.enable_stream_output)

    broadcast = BroadcastEventSink()
    app.state.events = broadcast

    translater = TranslaterApp(settings, MssCapture(), MultiEventSink(LogEventSink(), broadcast))
    translater.start()
    app.state.translater = translater
    logger.info("startup.complete", service_ready=translater.ready)

    yield
    logger.info("shutdown.complete")


app = FastAPI(
    title="Translater API",
    description="Screenshot and text translation over OpenAI-compatible chat models",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for the Streamlit frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
