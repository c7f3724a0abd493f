"""Local persistence for the single Gemini API credential."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import SecretStr

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "gemini_api_key"

CredentialSource = Literal["stored", "environment", "missing"]


class CredentialStore:
    """Store one API key string under a well-known key in a JSON file.

    Resolution order is the stored key, then the environment default from
    settings. The file holds nothing else.
    """

    def __init__(self, path: Path, fallback: Optional[SecretStr] = None):
        self._path = path
        self._fallback = fallback
        self._cached: Optional[str] = None
        self._loaded = False

    def _load(self) -> Optional[str]:
        if self._loaded:
            return self._cached

        self._loaded = True
        if not self._path.exists():
            self._cached = None
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read credential file %s: %s", self._path, exc)
            self._cached = None
            return None

        value = data.get(CREDENTIAL_KEY) if isinstance(data, dict) else None
        self._cached = value.strip() if isinstance(value, str) and value.strip() else None
        return self._cached

    def get_stored(self) -> Optional[str]:
        return self._load()

    def resolve(self) -> Optional[str]:
        """Return the key to use for requests, or None when none is configured."""
        stored = self._load()
        if stored:
            return stored
        if self._fallback is not None:
            value = self._fallback.get_secret_value().strip()
            return value or None
        return None

    def source(self) -> CredentialSource:
        if self._load():
            return "stored"
        if self.resolve():
            return "environment"
        return "missing"

    def save(self, api_key: str) -> None:
        value = api_key.strip()
        if not value:
            raise ValueError("API key must not be empty")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps({CREDENTIAL_KEY: value}, indent=2) + "\n", encoding="utf-8"
        )
        self._cached = value
        self._loaded = True
        logger.info("Stored API credential at %s", self._path)

    def clear(self) -> bool:
        existed = self._path.exists()
        if existed:
            self._path.unlink()
            logger.info("Removed stored API credential at %s", self._path)
        self._cached = None
        self._loaded = True
        return existed


def mask_key(api_key: Optional[str]) -> Optional[str]:
    """Return a display-safe hint such as ``…a1b2``."""
    if not api_key:
        return None
    return f"…{api_key[-4:]}" if len(api_key) > 4 else "…"


__all__ = ["CREDENTIAL_KEY", "CredentialSource", "CredentialStore", "mask_key"]
