"""Request and response schemas for the narration API."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.tts.audio_assembler import AudioFormat
from ..services.tts.run_state import ChunkStatus


class VoiceName(str, Enum):
    """Prebuilt Gemini voices."""

    PUCK = "Puck"
    CHARON = "Charon"
    KORE = "Kore"
    FENRIR = "Fenrir"
    AOEDE = "Aoede"
    LEDA = "Leda"
    ZEPHYR = "Zephyr"


class ModelId(str, Enum):
    """Gemini speech models."""

    FLASH = "gemini-2.5-flash-preview-tts"
    PRO = "gemini-2.5-pro-preview-tts"


DEFAULT_VOICE = VoiceName.FENRIR
DEFAULT_MODEL = ModelId.FLASH
DEFAULT_FORMAT = AudioFormat.WAV

TRANSLATION_LANGUAGES = [
    "English",
    "Spanish",
    "French",
    "German",
    "Italian",
    "Portuguese",
    "Chinese",
    "Japanese",
    "Korean",
    "Hindi",
    "Russian",
]

DEFAULT_SAMPLE_TEXT = (
    "Generate high-quality audiobooks from text using Google's latest AI models. "
    "Select a model and voice, paste your script, and let Gemini narrate for you."
)


class Catalog(BaseModel):
    voices: List[VoiceName]
    models: List[ModelId]
    formats: List[AudioFormat]
    languages: List[str]
    default_voice: VoiceName = DEFAULT_VOICE
    default_model: ModelId = DEFAULT_MODEL
    default_format: AudioFormat = DEFAULT_FORMAT
    max_chunk_chars: int


class ManuscriptPayload(BaseModel):
    text: str = Field(..., description="Full manuscript text")
    max_chars: Optional[int] = Field(
        default=None,
        ge=1,
        description="Character budget per chunk; defaults to CHUNK_MAX_CHARS.",
    )


class ChunkPreview(BaseModel):
    index: int
    text: str
    length: int


class SegmentationResponse(BaseModel):
    chunks: List[ChunkPreview]
    total_chunks: int
    max_chars: int


class EstimatePayload(BaseModel):
    text: str
    model: ModelId = DEFAULT_MODEL


class CostEstimate(BaseModel):
    characters: int
    tokens: int
    cost_usd: float
    currency: str = "USD"
    model: ModelId


class GenerationRequest(BaseModel):
    text: Optional[str] = Field(
        default=None,
        description="Manuscript to narrate; reuses the segmented manuscript when omitted.",
    )
    voice: VoiceName = DEFAULT_VOICE
    model: ModelId = DEFAULT_MODEL
    format: AudioFormat = DEFAULT_FORMAT
    start_index: int = Field(default=0, ge=0, description="0-based chunk to resume from")
    project_name: Optional[str] = Field(default=None, max_length=120)


class ChunkView(BaseModel):
    index: int
    text: str
    status: ChunkStatus
    retry_count: int
    has_audio: bool


class RunSnapshot(BaseModel):
    is_running: bool
    cancel_requested: bool
    progress: float
    current_chunk: int
    total_chunks: int
    start_index: int
    inter_chunk_delay_ms: int
    status_message: Optional[str] = None
    error: Optional[str] = None
    completed_chunks: int
    final_ready: bool
    voice: Optional[VoiceName] = None
    model: Optional[ModelId] = None
    format: Optional[AudioFormat] = None
    project_name: Optional[str] = None
    chunks: List[ChunkView] = Field(default_factory=list)


class VoiceSamplePayload(BaseModel):
    voice: VoiceName = DEFAULT_VOICE
    model: ModelId = DEFAULT_MODEL
    text: Optional[str] = Field(default=None, max_length=2000)


class TranslationPayload(BaseModel):
    text: str = Field(..., min_length=1)
    target_language: str = Field(..., min_length=1)


class TranslationResponse(BaseModel):
    text: str
    target_language: str


class IllustrationPayload(BaseModel):
    text: str = Field(..., min_length=1, description="Segment text to illustrate")
    count: int = Field(default=1, ge=1, le=4)
    style: Optional[str] = Field(
        default=None, description="Reuse a style instead of describing a new one"
    )


class GeneratedImage(BaseModel):
    id: str
    data: str = Field(..., description="data: URL of the image")


class IllustrationResponse(BaseModel):
    style: str
    images: List[GeneratedImage]


__all__ = [
    "Catalog",
    "ChunkPreview",
    "ChunkView",
    "CostEstimate",
    "DEFAULT_FORMAT",
    "DEFAULT_MODEL",
    "DEFAULT_SAMPLE_TEXT",
    "DEFAULT_VOICE",
    "EstimatePayload",
    "GeneratedImage",
    "GenerationRequest",
    "IllustrationPayload",
    "IllustrationResponse",
    "ManuscriptPayload",
    "ModelId",
    "RunSnapshot",
    "SegmentationResponse",
    "TRANSLATION_LANGUAGES",
    "TranslationPayload",
    "TranslationResponse",
    "VoiceName",
    "VoiceSamplePayload",
]
