"""
Narration pipeline package.

- text_segmenter: Splits a manuscript into sentence-bounded chunks
- run_state: Per-run chunk results and pacing state
- orchestrator: Sequential synthesis driver with retry/backoff
- audio_assembler: PCM concatenation and WAV/MP3 packaging

Architecture Overview:

    ┌────────────┐     ┌───────────────┐     ┌───────────────────────┐
    │ Manuscript │────▶│ build_chunks  │────▶│ GenerationOrchestrator│
    └────────────┘     └───────────────┘     └───────────────────────┘
                                                         │ PCM per chunk
                                                         ▼
                                              ┌─────────────────────┐
                                              │  audio_assembler    │
                                              │  preview / final    │
                                              └─────────────────────┘
"""

from .audio_assembler import (
    AudioFormat,
    EncodingUnavailableError,
    assemble_completed,
    concatenate_pcm,
    package_audio,
    pcm_to_mp3,
    pcm_to_wav,
)
from .orchestrator import (
    GenerationFailedError,
    GenerationOrchestrator,
    RetryPolicy,
    RunOutcome,
)
from .run_state import ChunkResult, ChunkStatus, RunState
from .text_segmenter import TextChunk, build_chunks, segment_text

__all__ = [
    "AudioFormat",
    "ChunkResult",
    "ChunkStatus",
    "EncodingUnavailableError",
    "GenerationFailedError",
    "GenerationOrchestrator",
    "RetryPolicy",
    "RunOutcome",
    "RunState",
    "TextChunk",
    "assemble_completed",
    "build_chunks",
    "concatenate_pcm",
    "package_audio",
    "pcm_to_mp3",
    "pcm_to_wav",
    "segment_text",
]
