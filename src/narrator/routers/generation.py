"""API routes for segmenting a manuscript and driving narration runs."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sse_starlette.sse import EventSourceResponse

from ..schemas.narration import (
    CostEstimate,
    EstimatePayload,
    GenerationRequest,
    ManuscriptPayload,
    RunSnapshot,
    SegmentationResponse,
)
from ..services.cost import estimate_cost
from ..services.narration_session import (
    Artifact,
    NarrationSession,
    NoAudioError,
    RunAlreadyActiveError,
)
from ..services.tts.audio_assembler import AudioFormat, EncodingUnavailableError

router = APIRouter(prefix="/api", tags=["generation"])

_EVENT_POLL_SECONDS = 15.0


def get_narration_session(request: Request) -> NarrationSession:
    session = getattr(request.app.state, "narration_session", None)
    if session is None:  # pragma: no cover
        raise RuntimeError("Narration session is not configured")
    return session


def _artifact_response(artifact: Artifact) -> Response:
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@router.post("/manuscript/segment", response_model=SegmentationResponse)
async def segment_manuscript(
    payload: ManuscriptPayload,
    session: NarrationSession = Depends(get_narration_session),
) -> SegmentationResponse:
    """Store the manuscript and return its chunk preview."""
    return await session.set_manuscript(payload.text, payload.max_chars)


@router.post("/manuscript/estimate", response_model=CostEstimate)
async def estimate_manuscript(payload: EstimatePayload) -> CostEstimate:
    return estimate_cost(payload.text, payload.model)


@router.post("/generation", response_model=RunSnapshot, status_code=202)
async def start_generation(
    payload: GenerationRequest,
    session: NarrationSession = Depends(get_narration_session),
) -> RunSnapshot:
    try:
        return await session.start(payload)
    except RunAlreadyActiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/generation", response_model=RunSnapshot)
async def stop_generation(
    session: NarrationSession = Depends(get_narration_session),
) -> RunSnapshot:
    return await session.stop()


@router.get("/generation", response_model=RunSnapshot)
async def read_generation(
    session: NarrationSession = Depends(get_narration_session),
) -> RunSnapshot:
    return session.snapshot()


@router.get("/generation/events", response_model=None)
async def stream_generation(
    request: Request,
    session: NarrationSession = Depends(get_narration_session),
) -> EventSourceResponse:
    """Stream run snapshots through Server-Sent Events."""

    queue = session.subscribe()

    async def event_publisher():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    snapshot: RunSnapshot = await asyncio.wait_for(
                        queue.get(), timeout=_EVENT_POLL_SECONDS
                    )
                except asyncio.TimeoutError:
                    continue
                yield {"event": "snapshot", "data": snapshot.model_dump_json()}
        finally:
            session.unsubscribe(queue)

    return EventSourceResponse(event_publisher())


@router.get("/generation/preview")
async def download_preview(
    session: NarrationSession = Depends(get_narration_session),
) -> Response:
    """WAV of the chunks completed so far; playable while generation runs."""
    try:
        artifact = session.preview()
    except NoAudioError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _artifact_response(artifact)


@router.get("/generation/result")
async def download_result(
    format: AudioFormat | None = Query(default=None),
    session: NarrationSession = Depends(get_narration_session),
) -> Response:
    try:
        artifact = await session.final(format)
    except NoAudioError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EncodingUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _artifact_response(artifact)


@router.get("/generation/chunks/{position}")
async def download_chunk(
    position: int,
    format: AudioFormat | None = Query(default=None),
    session: NarrationSession = Depends(get_narration_session),
) -> Response:
    """Audio for a single chunk, addressed by its 1-based position."""
    try:
        artifact = await session.chunk_artifact(position, format)
    except NoAudioError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EncodingUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _artifact_response(artifact)


__all__ = ["router"]
