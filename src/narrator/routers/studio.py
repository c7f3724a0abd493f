"""Auxiliary studio routes: catalog, voice samples, translation, illustrations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..config import Settings, get_settings
from ..gemini import GeminiClient, GeminiError, MissingCredentialError
from ..schemas.narration import (
    DEFAULT_SAMPLE_TEXT,
    TRANSLATION_LANGUAGES,
    Catalog,
    IllustrationPayload,
    IllustrationResponse,
    ModelId,
    TranslationPayload,
    TranslationResponse,
    VoiceName,
    VoiceSamplePayload,
)
from ..services.illustrations import IllustrationService
from ..services.tts.audio_assembler import AudioFormat, pcm_to_wav

router = APIRouter(prefix="/api", tags=["studio"])


def get_gemini_client(request: Request) -> GeminiClient:
    client = getattr(request.app.state, "gemini_client", None)
    if client is None:  # pragma: no cover
        raise RuntimeError("Gemini client is not configured")
    return client


def get_illustration_service(request: Request) -> IllustrationService:
    service = getattr(request.app.state, "illustration_service", None)
    if service is None:  # pragma: no cover
        raise RuntimeError("Illustration service is not configured")
    return service


def _http_error(exc: GeminiError) -> HTTPException:
    if isinstance(exc, MissingCredentialError):
        return HTTPException(status_code=400, detail=exc.message)
    status_code = 429 if exc.is_rate_limited else 502
    return HTTPException(status_code=status_code, detail=exc.message)


@router.get("/catalog", response_model=Catalog)
async def read_catalog(settings: Settings = Depends(get_settings)) -> Catalog:
    return Catalog(
        voices=list(VoiceName),
        models=list(ModelId),
        formats=list(AudioFormat),
        languages=TRANSLATION_LANGUAGES,
        max_chunk_chars=settings.chunk_max_chars,
    )


@router.post("/voices/sample")
async def synthesize_voice_sample(
    payload: VoiceSamplePayload,
    client: GeminiClient = Depends(get_gemini_client),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Speak a short sample with the chosen voice and return it as WAV."""
    text = (payload.text or "").strip() or DEFAULT_SAMPLE_TEXT
    try:
        pcm = await client.synthesize_speech(text, payload.voice.value, payload.model.value)
    except GeminiError as exc:
        raise _http_error(exc) from exc
    return Response(
        content=pcm_to_wav(pcm, settings.sample_rate, settings.num_channels),
        media_type=AudioFormat.WAV.media_type,
    )


@router.post("/translate", response_model=TranslationResponse)
async def translate(
    payload: TranslationPayload,
    client: GeminiClient = Depends(get_gemini_client),
) -> TranslationResponse:
    """Translate text; the original text comes back if translation fails."""
    translated = await client.translate_text(payload.text, payload.target_language)
    return TranslationResponse(text=translated, target_language=payload.target_language)


@router.post("/illustrations", response_model=IllustrationResponse)
async def create_illustrations(
    payload: IllustrationPayload,
    service: IllustrationService = Depends(get_illustration_service),
) -> IllustrationResponse:
    try:
        return await service.illustrate(payload.text, payload.count, payload.style)
    except GeminiError as exc:
        raise _http_error(exc) from exc


__all__ = ["router"]
