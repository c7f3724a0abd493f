"""
Text Segmenter for the Narration Pipeline.

This module splits a complete manuscript into request-sized chunks for the
speech synthesis API. Chunks are packed from whole sentences so a narrator
never stops mid-sentence at a request boundary.

Architecture:
    Manuscript → segment_text() → ordered chunk list → GenerationOrchestrator

Usage:
    chunks = build_chunks(manuscript, max_chars=2000)
    for chunk in chunks:
        print(chunk.index, chunk.text)
"""

import re
from dataclasses import dataclass
from typing import List

DEFAULT_MAX_CHARS = 2000

_WHITESPACE = re.compile(r"\s+")
# Terminator stays attached to the sentence it ends
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class TextChunk:
    """One request-sized piece of the manuscript.

    Attributes:
        index: Stable 0-based position assigned at segmentation time
        text: Non-empty chunk text
    """

    index: int
    text: str


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim the ends."""
    return _WHITESPACE.sub(" ", text).strip()


def split_into_sentences(text: str) -> List[str]:
    """
    Split text into sentences.

    A boundary is any of ``.``, ``!`` or ``?`` immediately followed by
    whitespace. The terminator is kept with the preceding sentence.

    Args:
        text: Raw input text

    Returns:
        Non-empty sentences in their original order
    """
    cleaned = normalize_whitespace(text)
    if not cleaned:
        return []
    return [s for s in _SENTENCE_BOUNDARY.split(cleaned) if s.strip()]


def segment_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[str]:
    """
    Greedily pack consecutive sentences into chunks of at most ``max_chars``.

    A sentence is appended while ``len(current) + len(sentence) + 1`` still
    fits the budget; otherwise the current chunk is closed and the sentence
    starts a new one. A single sentence longer than the budget becomes its
    own oversized chunk rather than being cut.

    Args:
        text: Raw manuscript text
        max_chars: Character budget per chunk, must be positive

    Returns:
        Ordered list of non-empty chunk strings ([] for empty input)
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks: List[str] = []
    current = ""

    for sentence in split_into_sentences(text):
        if len(current) + len(sentence) + 1 <= max_chars:
            current = f"{current} {sentence}" if current else sentence
        else:
            if current:
                chunks.append(current)
            current = sentence

    if current:
        chunks.append(current)

    return chunks


def build_chunks(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[TextChunk]:
    """Segment ``text`` and assign each chunk its stable index."""
    return [
        TextChunk(index=i, text=chunk)
        for i, chunk in enumerate(segment_text(text, max_chars))
    ]


__all__ = [
    "DEFAULT_MAX_CHARS",
    "TextChunk",
    "build_chunks",
    "normalize_whitespace",
    "segment_text",
    "split_into_sentences",
]
