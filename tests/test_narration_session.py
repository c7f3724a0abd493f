import asyncio

import pytest

from narrator.schemas.narration import GenerationRequest
from narrator.services.narration_session import (
    NarrationSession,
    NoAudioError,
    RunAlreadyActiveError,
)
from narrator.services.tts.orchestrator import GenerationOrchestrator, RunOutcome

TEXT = "Alpha one. Bravo two. Charlie three."


async def _no_wait(_seconds: float) -> None:
    return None


def make_session(synthesize=None, **kwargs) -> NarrationSession:
    async def default(text: str) -> bytes:
        return text.encode()

    return NarrationSession(
        lambda _voice, _model: synthesize or default,
        orchestrator=GenerationOrchestrator(sleep=_no_wait),
        max_chars=12,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_run_completes_and_packages_preview():
    session = make_session()
    await session.set_manuscript(TEXT)

    await session.start(GenerationRequest(project_name="Field Notes"))
    outcome = await session.wait()

    assert outcome is RunOutcome.COMPLETED
    preview = session.preview()
    assert preview.filename == "field-notes_preview.wav"
    assert preview.content[44:] == b"Alpha one.Bravo two.Charlie three."
    # Cached until another chunk completes
    assert session.preview().content is preview.content


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots():
    session = make_session()
    await session.set_manuscript(TEXT)
    queue = session.subscribe()

    await session.start(GenerationRequest())
    await session.wait()

    snapshots = []
    while not queue.empty():
        snapshots.append(queue.get_nowait())
    session.unsubscribe(queue)

    assert snapshots[0].is_running is False
    assert snapshots[-1].completed_chunks == 3
    assert snapshots[-1].final_ready is True
    assert any(s.is_running for s in snapshots)


@pytest.mark.asyncio
async def test_editing_manuscript_discards_active_run():
    gate = asyncio.Event()

    async def blocked(text: str) -> bytes:
        await gate.wait()
        return b"pcm"

    session = make_session(blocked)
    await session.set_manuscript(TEXT)
    await session.start(GenerationRequest())
    await asyncio.sleep(0)

    with pytest.raises(RunAlreadyActiveError):
        await session.start(GenerationRequest())

    await session.set_manuscript("Something else. Entirely new.")

    assert session.is_running is False
    snapshot = session.snapshot()
    assert snapshot.total_chunks == 2
    assert snapshot.completed_chunks == 0
    with pytest.raises(NoAudioError):
        session.preview()


@pytest.mark.asyncio
async def test_final_is_unavailable_while_running():
    gate = asyncio.Event()

    async def blocked(text: str) -> bytes:
        await gate.wait()
        return b"pcm"

    session = make_session(blocked)
    await session.set_manuscript(TEXT)
    await session.start(GenerationRequest())

    with pytest.raises(NoAudioError):
        await session.final()

    gate.set()
    await session.wait()
    final = await session.final()
    assert final.content[44:] == b"pcm" * 3
    await session.shutdown()


@pytest.mark.asyncio
async def test_start_with_new_text_keeps_segmentation_budget():
    async def synthesize(text: str) -> bytes:
        return text.encode()

    session = NarrationSession(
        lambda _voice, _model: synthesize,
        orchestrator=GenerationOrchestrator(sleep=_no_wait),
    )
    await session.set_manuscript(TEXT, max_chars=12)

    await session.start(GenerationRequest(text="Delta four. Echo five. Foxtrot six."))
    await session.wait()

    snapshot = session.snapshot()
    assert snapshot.total_chunks == 3
    assert [c.text for c in session.chunks] == ["Delta four.", "Echo five.", "Foxtrot six."]
