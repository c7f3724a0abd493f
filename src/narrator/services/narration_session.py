"""In-memory narration session: manuscript, active run, and audio artifacts."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from ..schemas.narration import (
    ChunkPreview,
    ChunkView,
    GenerationRequest,
    ModelId,
    RunSnapshot,
    SegmentationResponse,
    VoiceName,
)
from ..utils.filenames import build_artifact_name
from .tts.audio_assembler import (
    AudioFormat,
    Mp3EncoderFactory,
    assemble_completed,
    completed_with_audio,
    package_audio,
    pcm_to_wav,
)
from .tts.orchestrator import (
    GenerationFailedError,
    GenerationOrchestrator,
    RunOutcome,
    Synthesizer,
)
from .tts.run_state import ChunkResult, ChunkStatus, RunState
from .tts.text_segmenter import TextChunk, build_chunks

logger = logging.getLogger(__name__)

SynthesizerFactory = Callable[[VoiceName, ModelId], Synthesizer]


class RunAlreadyActiveError(RuntimeError):
    """Raised when a run is started while another is still in flight."""


class NoAudioError(LookupError):
    """Raised when an artifact is requested before any audio exists."""


@dataclass
class Artifact:
    filename: str
    media_type: str
    content: bytes


@dataclass
class _ActiveRun:
    state: RunState
    request: GenerationRequest
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None
    outcome: Optional[RunOutcome] = None
    finished: bool = False
    preview_key: int = -1
    preview_wav: bytes = b""
    final_key: Optional[tuple[AudioFormat, int]] = None
    final_bytes: bytes = b""


class NarrationSession:
    """
    Owns the single narration run of this process.

    The orchestrator is the only writer of the RunState; this class starts
    and cancels it, fans snapshots out to subscribers, and packages preview,
    per-chunk and final artifacts on demand.

    Editing the manuscript cancels any active run and discards its results.
    """

    def __init__(
        self,
        synthesizer_factory: SynthesizerFactory,
        *,
        orchestrator: Optional[GenerationOrchestrator] = None,
        max_chars: int = 2000,
        sample_rate: int = 24000,
        channels: int = 1,
        mp3_bitrate_kbps: int = 128,
        default_project_name: str = "audiobook",
        encoder_factory: Optional[Mp3EncoderFactory] = None,
    ):
        self._synthesizer_factory = synthesizer_factory
        self._orchestrator = orchestrator or GenerationOrchestrator()
        self.max_chars = max_chars
        self.sample_rate = sample_rate
        self.channels = channels
        self.mp3_bitrate_kbps = mp3_bitrate_kbps
        self.default_project_name = default_project_name
        self._encoder_factory = encoder_factory

        self._text: str = ""
        self._budget = max_chars
        self._chunks: List[TextChunk] = []
        self._run: Optional[_ActiveRun] = None
        self._lock = asyncio.Lock()
        self._subscribers: Set[asyncio.Queue] = set()

    # ------------------------------------------------------------------
    # Manuscript
    # ------------------------------------------------------------------

    @property
    def chunks(self) -> List[TextChunk]:
        return list(self._chunks)

    async def set_manuscript(
        self, text: str, max_chars: Optional[int] = None
    ) -> SegmentationResponse:
        """Segment ``text`` and invalidate any previous run."""
        budget = max_chars or self.max_chars
        chunks = build_chunks(text, budget)
        async with self._lock:
            await self._discard_run()
            self._text = text
            self._budget = budget
            self._chunks = chunks
        logger.info("Manuscript segmented into %d chunk(s) of <= %d chars", len(chunks), budget)
        self._publish()
        return SegmentationResponse(
            chunks=[
                ChunkPreview(index=c.index, text=c.text, length=len(c.text))
                for c in chunks
            ],
            total_chunks=len(chunks),
            max_chars=budget,
        )

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        run = self._run
        return (
            run is not None
            and run.task is not None
            and not run.finished
            and not run.task.done()
        )

    async def start(self, request: GenerationRequest) -> RunSnapshot:
        """Start a new run in the background and return its first snapshot."""
        if self.is_running:
            raise RunAlreadyActiveError("A generation run is already in progress")

        if request.text is not None and request.text != self._text:
            # Keep the chunk budget chosen when the manuscript was last segmented
            await self.set_manuscript(request.text, self._budget)

        async with self._lock:
            if self.is_running:
                raise RunAlreadyActiveError("A generation run is already in progress")
            if not self._chunks:
                raise ValueError("Manuscript is empty; nothing to narrate")

            state = RunState.for_chunks(self._chunks, start_index=request.start_index)
            run = _ActiveRun(state=state, request=request)
            synthesize = self._synthesizer_factory(request.voice, request.model)
            run.task = asyncio.create_task(self._drive(run, synthesize))
            self._run = run

        logger.info(
            "Started narration run: %d chunk(s), start=%d, voice=%s, model=%s, format=%s",
            state.total_chunks,
            request.start_index,
            request.voice.value,
            request.model.value,
            request.format.value,
        )
        return self.snapshot()

    async def stop(self) -> RunSnapshot:
        """Request cooperative cancellation; completed audio is kept."""
        run = self._run
        if run is not None and self.is_running:
            run.cancel_event.set()
            run.state.cancel_requested = True
            logger.info("Cancellation requested for the active run")
            self._publish()
        return self.snapshot()

    async def wait(self) -> Optional[RunOutcome]:
        """Wait for the active run task to settle."""
        run = self._run
        if run is None or run.task is None:
            return None
        with suppress(asyncio.CancelledError):
            await run.task
        return run.outcome

    async def shutdown(self) -> None:
        async with self._lock:
            await self._discard_run()

    async def _discard_run(self) -> None:
        run = self._run
        self._run = None
        if run is None or run.task is None or run.task.done():
            return
        run.cancel_event.set()
        run.task.cancel()
        with suppress(asyncio.CancelledError):
            await run.task

    async def _drive(self, run: _ActiveRun, synthesize: Synthesizer) -> None:
        try:
            run.outcome = await self._orchestrator.run(
                run.state,
                synthesize,
                on_progress=lambda _state: self._publish(),
                on_chunk_complete=lambda _state, _chunk: self._publish(),
                cancel_event=run.cancel_event,
            )
        except GenerationFailedError:
            # Already recorded on the state as last_error
            pass
        except asyncio.CancelledError:
            run.outcome = RunOutcome.CANCELLED
            raise
        except Exception as exc:
            logger.exception("Narration run crashed")
            run.state.last_error = str(exc) or exc.__class__.__name__
        finally:
            run.state.is_running = False
            run.finished = True
            self._publish()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        run = self._run
        if run is None:
            return RunSnapshot(
                is_running=False,
                cancel_requested=False,
                progress=0.0,
                current_chunk=0,
                total_chunks=len(self._chunks),
                start_index=0,
                inter_chunk_delay_ms=0,
                completed_chunks=0,
                final_ready=False,
                chunks=[
                    ChunkView(
                        index=c.index,
                        text=c.text,
                        status=ChunkStatus.PENDING,
                        retry_count=0,
                        has_audio=False,
                    )
                    for c in self._chunks
                ],
            )

        state = run.state
        running = self.is_running
        completed = len(completed_with_audio(state.chunks))
        return RunSnapshot(
            is_running=running,
            cancel_requested=state.cancel_requested,
            progress=round(state.progress, 2),
            current_chunk=state.current_chunk,
            total_chunks=state.total_chunks,
            start_index=state.start_index,
            inter_chunk_delay_ms=state.inter_chunk_delay_ms,
            status_message=state.status_message,
            error=state.last_error,
            completed_chunks=completed,
            final_ready=not running and completed > 0,
            voice=run.request.voice,
            model=run.request.model,
            format=run.request.format,
            project_name=run.request.project_name,
            chunks=[self._chunk_view(c) for c in state.chunks],
        )

    @staticmethod
    def _chunk_view(chunk: ChunkResult) -> ChunkView:
        return ChunkView(
            index=chunk.index,
            text=chunk.text,
            status=chunk.status,
            retry_count=chunk.retry_count,
            has_audio=bool(chunk.pcm),
        )

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=64)
        self._subscribers.add(queue)
        queue.put_nowait(self.snapshot())
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for queue in list(self._subscribers):
            if queue.full():
                # Slow consumer: drop its oldest snapshot
                with suppress(asyncio.QueueEmpty):
                    queue.get_nowait()
            queue.put_nowait(snapshot)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _require_run(self) -> _ActiveRun:
        if self._run is None:
            raise NoAudioError("No narration run has been started")
        return self._run

    def _project_name(self, run: _ActiveRun) -> Optional[str]:
        return run.request.project_name or self.default_project_name

    def preview(self) -> Artifact:
        """WAV of every chunk completed so far; cached per completed count."""
        run = self._require_run()
        completed = len(completed_with_audio(run.state.chunks))
        if completed == 0:
            raise NoAudioError("No audio has been generated yet")
        if run.preview_key != completed:
            run.preview_wav = pcm_to_wav(
                assemble_completed(run.state.chunks), self.sample_rate, self.channels
            )
            run.preview_key = completed
        return Artifact(
            filename=build_artifact_name(
                self._project_name(run), "preview", AudioFormat.WAV.value
            ),
            media_type=AudioFormat.WAV.media_type,
            content=run.preview_wav,
        )

    async def final(self, fmt: Optional[AudioFormat] = None) -> Artifact:
        """Complete artifact in the requested (or run's) format."""
        run = self._require_run()
        target = fmt or run.request.format
        if self.is_running:
            raise NoAudioError("Generation is still running")
        completed = len(completed_with_audio(run.state.chunks))
        if completed == 0:
            raise NoAudioError("No audio has been generated yet")

        key = (target, completed)
        if run.final_key != key:
            pcm = assemble_completed(run.state.chunks)
            run.final_bytes = await self._package(pcm, target)
            run.final_key = key
        return Artifact(
            filename=build_artifact_name(self._project_name(run), "complete", target.value),
            media_type=target.media_type,
            content=run.final_bytes,
        )

    async def chunk_artifact(
        self, position: int, fmt: Optional[AudioFormat] = None
    ) -> Artifact:
        """Artifact for one chunk, addressed by its 1-based position."""
        run = self._require_run()
        target = fmt or run.request.format
        if position < 1 or position > run.state.total_chunks:
            raise NoAudioError(f"Chunk {position} does not exist")
        chunk = run.state.chunks[position - 1]
        if chunk.status is not ChunkStatus.COMPLETED or not chunk.pcm:
            raise NoAudioError(f"Chunk {position} has no audio")
        content = await self._package(chunk.pcm, target)
        return Artifact(
            filename=build_artifact_name(
                self._project_name(run), f"chunk_{position}", target.value
            ),
            media_type=target.media_type,
            content=content,
        )

    async def _package(self, pcm: bytes, fmt: AudioFormat) -> bytes:
        if fmt is AudioFormat.WAV:
            return pcm_to_wav(pcm, self.sample_rate, self.channels)
        # MP3 encoding blocks on a subprocess
        return await asyncio.to_thread(
            package_audio,
            pcm,
            fmt,
            sample_rate=self.sample_rate,
            channels=self.channels,
            bitrate_kbps=self.mp3_bitrate_kbps,
            encoder_factory=self._encoder_factory,
        )


__all__ = [
    "Artifact",
    "NarrationSession",
    "NoAudioError",
    "RunAlreadyActiveError",
    "SynthesizerFactory",
]
