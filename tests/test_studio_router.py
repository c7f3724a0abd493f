from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from narrator.app import create_app
from narrator.config import get_settings
from narrator.gemini import GeminiError
from narrator.routers.studio import get_gemini_client, get_illustration_service
from narrator.services.illustrations import IllustrationService


class FakeGemini:
    def __init__(self, error: GeminiError | None = None):
        self.error = error
        self.spoken: list[tuple[str, str, str]] = []

    async def synthesize_speech(self, text: str, voice: str, model: str) -> bytes:
        if self.error is not None:
            raise self.error
        self.spoken.append((text, voice, model))
        return b"\x00\x00" * 10

    async def translate_text(self, text: str, target_language: str) -> str:
        return f"[{target_language}] {text}"

    async def describe_style(self, excerpt: str) -> str:
        return "woodcut print"

    async def generate_image(self, style: str, scene: str) -> str:
        if self.error is not None:
            raise self.error
        return "data:image/png;base64,AAAA"


@pytest.fixture
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def studio_client(monkeypatch, tmp_path, fake_gemini) -> Generator[TestClient, None, None]:
    monkeypatch.delenv("LOG_DIR", raising=False)
    monkeypatch.setenv("CREDENTIALS_PATH", str(tmp_path / "credentials.json"))
    get_settings.cache_clear()

    app = create_app()
    app.dependency_overrides[get_gemini_client] = lambda: fake_gemini
    app.dependency_overrides[get_illustration_service] = lambda: IllustrationService(
        fake_gemini  # type: ignore[arg-type]
    )

    with TestClient(app) as client:
        yield client

    get_settings.cache_clear()


def test_voice_sample_returns_wav(studio_client: TestClient, fake_gemini: FakeGemini) -> None:
    response = studio_client.post("/api/voices/sample", json={"voice": "Charon"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/wav"
    assert response.content[:4] == b"RIFF"
    assert len(response.content) == 44 + 20
    text, voice, model = fake_gemini.spoken[0]
    assert text.startswith("Generate high-quality audiobooks")
    assert (voice, model) == ("Charon", "gemini-2.5-flash-preview-tts")


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (GeminiError(429, "Quota exceeded"), 429),
        (GeminiError(500, "internal"), 502),
    ],
)
def test_voice_sample_maps_upstream_errors(
    studio_client: TestClient, fake_gemini: FakeGemini, error, expected_status
) -> None:
    fake_gemini.error = error

    response = studio_client.post("/api/voices/sample", json={"text": "Hi."})

    assert response.status_code == expected_status


def test_translate(studio_client: TestClient) -> None:
    response = studio_client.post(
        "/api/translate", json={"text": "Good night.", "target_language": "German"}
    )

    assert response.status_code == 200
    assert response.json() == {"text": "[German] Good night.", "target_language": "German"}


def test_illustrations(studio_client: TestClient) -> None:
    response = studio_client.post(
        "/api/illustrations", json={"text": "A fox crossing a frozen river.", "count": 2}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["style"] == "woodcut print"
    assert [image["data"] for image in payload["images"]] == ["data:image/png;base64,AAAA"] * 2


def test_illustrations_fail_as_a_batch(
    studio_client: TestClient, fake_gemini: FakeGemini
) -> None:
    fake_gemini.error = GeminiError(500, "image backend down")

    response = studio_client.post("/api/illustrations", json={"text": "A fox.", "count": 3})

    assert response.status_code == 502


def test_illustration_count_is_bounded(studio_client: TestClient) -> None:
    response = studio_client.post("/api/illustrations", json={"text": "A fox.", "count": 5})

    assert response.status_code == 422
