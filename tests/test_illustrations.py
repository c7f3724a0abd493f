import pytest

from narrator.gemini import GeminiError
from narrator.services.illustrations import STYLE_EXCERPT_CHARS, IllustrationService


class FakeGemini:
    def __init__(self, fail_on: int | None = None):
        self.style_prompts: list[str] = []
        self.image_calls: list[tuple[str, str]] = []
        self._fail_on = fail_on

    async def describe_style(self, excerpt: str) -> str:
        self.style_prompts.append(excerpt)
        return "charcoal sketch"

    async def generate_image(self, style: str, scene: str) -> str:
        self.image_calls.append((style, scene))
        if self._fail_on is not None and len(self.image_calls) == self._fail_on:
            raise GeminiError(500, "image backend down")
        return f"data:image/png;base64,IMG{len(self.image_calls)}"


@pytest.mark.asyncio
async def test_illustrate_describes_style_and_renders_each_image():
    gemini = FakeGemini()
    service = IllustrationService(gemini)  # type: ignore[arg-type]
    text = "w" * (STYLE_EXCERPT_CHARS + 500)

    result = await service.illustrate(text, count=3)

    assert result.style == "charcoal sketch"
    assert gemini.style_prompts == ["w" * STYLE_EXCERPT_CHARS]
    assert len(result.images) == 3
    assert len({image.id for image in result.images}) == 3
    assert all(image.data.startswith("data:image/png;base64,") for image in result.images)


@pytest.mark.asyncio
async def test_explicit_style_skips_description():
    gemini = FakeGemini()
    service = IllustrationService(gemini)  # type: ignore[arg-type]

    result = await service.illustrate("A harbour at dusk.", count=1, style=" oil painting ")

    assert result.style == "oil painting"
    assert gemini.style_prompts == []
    assert gemini.image_calls == [("oil painting", "A harbour at dusk.")]


@pytest.mark.asyncio
async def test_batch_fails_when_any_image_fails():
    gemini = FakeGemini(fail_on=2)
    service = IllustrationService(gemini)  # type: ignore[arg-type]

    with pytest.raises(GeminiError):
        await service.illustrate("A harbour at dusk.", count=3)

    assert len(gemini.image_calls) == 3
