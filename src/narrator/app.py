"""Application factory for the narration service."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .gemini import GeminiClient
from .logging_handlers import (
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    DateStampedFileHandler,
    cleanup_old_logs,
)
from .routers.credential import router as credential_router
from .routers.generation import router as generation_router
from .routers.studio import router as studio_router
from .schemas.narration import ModelId, VoiceName
from .services.credentials import CredentialStore
from .services.illustrations import IllustrationService
from .services.narration_session import NarrationSession, SynthesizerFactory
from .services.tts.audio_assembler import Mp3EncoderFactory
from .services.tts.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


def _configure_logging(log_dir: Optional[Path] = None) -> None:
    """Configure logging based on LOG_LEVEL and the optional log directory."""
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers: list[logging.Handler] = []
    if log_dir is not None:
        handlers.append(DateStampedFileHandler(log_dir, prefix="narrator"))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("narrator").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # httpx logs every request line at INFO
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    *,
    synthesizer_factory: Optional[SynthesizerFactory] = None,
    orchestrator: Optional[GenerationOrchestrator] = None,
    encoder_factory: Optional[Mp3EncoderFactory] = None,
) -> FastAPI:
    settings = get_settings()
    _configure_logging(settings.log_dir)

    project_root = Path(__file__).resolve().parent.parent.parent

    def _resolve_under(base: Path, p: Path) -> Path:
        # Absolute paths are used as-is (tests and external mounts)
        if p.is_absolute():
            return p.resolve()
        resolved = (base / p).resolve()
        if not resolved.is_relative_to(base):
            raise ValueError(f"Configured path {resolved} escapes project root {base}")
        return resolved

    credential_store = CredentialStore(
        _resolve_under(project_root, settings.credentials_path),
        fallback=settings.gemini_api_key,
    )
    gemini_client = GeminiClient(settings, api_key_resolver=credential_store.resolve)
    illustration_service = IllustrationService(gemini_client)

    def _gemini_synthesizer(voice: VoiceName, model: ModelId):
        return functools.partial(
            gemini_client.synthesize_speech, voice=voice.value, model=model.value
        )

    narration_session = NarrationSession(
        synthesizer_factory or _gemini_synthesizer,
        orchestrator=orchestrator,
        max_chars=settings.chunk_max_chars,
        sample_rate=settings.sample_rate,
        channels=settings.num_channels,
        mp3_bitrate_kbps=settings.mp3_bitrate_kbps,
        default_project_name=settings.default_project_name,
        encoder_factory=encoder_factory,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.log_dir is not None:
            cleanup_old_logs(settings.log_dir, settings.log_retention_hours, logger)
        logger.info(
            "Narration service ready (credential source: %s)", credential_store.source()
        )
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(narration_session.shutdown(), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Narration session shutdown timed out after 10s")
            await gemini_client.aclose()

    app = FastAPI(
        title="Gemini Audiobook Narrator",
        version="0.1.0",
        description="Turns manuscripts into narrated audio with Gemini text-to-speech.",
        lifespan=lifespan,
    )

    app.state.credential_store = credential_store
    app.state.gemini_client = gemini_client
    app.state.illustration_service = illustration_service
    app.state.narration_session = narration_session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generation_router)
    app.include_router(credential_router)
    app.include_router(studio_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | bool]:
        source = credential_store.source()
        return {
            "status": "ok",
            "credential_configured": source != "missing",
            "credential_source": source,
        }

    return app


__all__ = ["create_app"]
