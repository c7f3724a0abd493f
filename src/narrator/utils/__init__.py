"""Utility helpers for narrator services."""

from .filenames import build_artifact_name, slugify_filename

__all__ = ["build_artifact_name", "slugify_filename"]
