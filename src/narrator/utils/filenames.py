"""Filename helpers for downloadable audio artifacts."""

from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")

DEFAULT_PROJECT_SLUG = "audiobook"


def slugify_filename(name: str | None, *, max_length: int = 60) -> str:
    """Return a filesystem-friendly slug derived from a user-supplied name.

    Parameters
    ----------
    name:
        Project name (may be None or empty).
    max_length:
        Maximum length of the resulting slug. Must be positive.

    Returns
    -------
    str
        Lowercase slug comprised of ASCII letters, numbers, and hyphens. Empty when no
        reasonable slug can be produced.
    """

    if not name:
        return ""

    slug = _NON_ALNUM.sub("-", name).strip("-")
    if not slug:
        return ""

    slug = slug.lower()
    if max_length > 0 and len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def build_artifact_name(
    project_name: str | None,
    suffix: str,
    extension: str,
    *,
    default: str = DEFAULT_PROJECT_SLUG,
) -> str:
    """Construct a download filename such as ``my-book_chunk_3.wav``.

    ``suffix`` is either ``chunk_<n>`` (1-based) or ``complete``. Names that
    do not yield a usable slug fall back to ``default``.
    """

    base = slugify_filename(project_name) or slugify_filename(default) or DEFAULT_PROJECT_SLUG
    ext = extension.lstrip(".")
    return f"{base}_{suffix}.{ext}"


__all__ = ["DEFAULT_PROJECT_SLUG", "build_artifact_name", "slugify_filename"]
