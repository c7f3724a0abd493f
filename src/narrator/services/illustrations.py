"""Per-segment illustration generation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional

from ..gemini import GeminiClient
from ..schemas.narration import GeneratedImage, IllustrationResponse

logger = logging.getLogger(__name__)

STYLE_EXCERPT_CHARS = 1500


class IllustrationService:
    """Describe a visual style for a segment and render N images for it.

    The N image requests run in parallel and are awaited together. The batch
    is all-or-nothing: if any request fails the error propagates, while the
    sibling requests are allowed to finish on their own.
    """

    def __init__(self, client: GeminiClient):
        self._client = client

    async def describe_style(self, text: str) -> str:
        return await self._client.describe_style(text[:STYLE_EXCERPT_CHARS])

    async def illustrate(
        self, text: str, count: int = 1, style: Optional[str] = None
    ) -> IllustrationResponse:
        resolved_style = style.strip() if style and style.strip() else None
        if resolved_style is None:
            resolved_style = await self.describe_style(text)

        logger.info("Generating %d illustration(s) for segment (%d chars)", count, len(text))
        results = await asyncio.gather(
            *(self._client.generate_image(resolved_style, text) for _ in range(count)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Illustration batch failed: %s", result)
                raise result

        images = [
            GeneratedImage(id=uuid.uuid4().hex, data=data)
            for data in results
            if isinstance(data, str)
        ]
        return IllustrationResponse(style=resolved_style, images=images)


__all__ = ["IllustrationService", "STYLE_EXCERPT_CHARS"]
