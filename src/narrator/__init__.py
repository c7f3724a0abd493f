"""Narration backend: chunked Gemini text-to-speech with live preview."""

__version__ = "0.1.0"
