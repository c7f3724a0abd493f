"""
Generation Orchestrator for Chunked Narration.

Drives the speech API over an ordered list of chunks, one request at a time,
and records PCM results on an explicit RunState.

Architecture:
    RunState.chunks → GenerationOrchestrator.run() → synthesize() per chunk
                                                   → on_chunk_complete()
                                                   → assembler (preview/final)

Per-chunk state machine:
    pending → in_progress → completed
                          → failed → in_progress (retry)
                          → failed (terminal)

Retry policy:
- Up to 15 attempts per chunk.
- Three consecutive non-rate-limit failures abort the whole run; a
  systematic error (bad request) should not burn the full budget.
- Non-rate-limit failures back off exponentially: 2000ms × 1.5^attempt.
- Rate-limit failures back off linearly from a higher floor:
  10000ms + attempt × 5000ms, and permanently raise the inter-chunk pacing
  delay to 6000ms for the rest of the run.

The pacing delay between chunks is independent of, and added to, the retry
backoff.

Cancellation is cooperative: the cancel event is checked at the top of each
chunk iteration and after every wait. A synthesis call that is already in
flight is never interrupted; its result is simply not followed by further
work.

Usage:
    state = RunState.for_chunks(build_chunks(text), start_index=0)
    orchestrator = GenerationOrchestrator()
    outcome = await orchestrator.run(
        state,
        synthesize,
        on_chunk_complete=refresh_preview,
        cancel_event=cancel_event,
    )
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ...gemini import GeminiError, MissingCredentialError, is_rate_limit_failure
from .run_state import ChunkResult, ChunkStatus, RunState

logger = logging.getLogger(__name__)

Synthesizer = Callable[[str], Awaitable[bytes]]
ProgressCallback = Callable[[RunState], Any]
ChunkCallback = Callable[[RunState, ChunkResult], Any]
SleepFunc = Callable[[float], Awaitable[Any]]

RATE_LIMIT_EXHAUSTED_MESSAGE = (
    "Quota exceeded (Rate Limit). Please try again later or check your API plan."
)


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Success:
    pcm: bytes


@dataclass(frozen=True)
class RetryableFailure:
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class FatalFailure:
    message: str


AttemptOutcome = Union[Success, RetryableFailure, FatalFailure]


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GenerationFailedError(Exception):
    """Terminal failure of a run, carrying the 1-based chunk position."""

    def __init__(self, chunk_position: int, message: str):
        super().__init__(message)
        self.chunk_position = chunk_position
        self.message = message


@dataclass(frozen=True)
class RetryPolicy:
    """Retry and pacing constants for one run."""

    max_attempts: int = 15
    fail_fast_after: int = 3
    base_delay_ms: int = 2000
    backoff_factor: float = 1.5
    rate_limit_floor_ms: int = 10000
    rate_limit_step_ms: int = 5000
    rate_limited_inter_chunk_delay_ms: int = 6000

    def backoff_ms(self, kind: FailureKind, attempt: int) -> int:
        """Delay before the next attempt after ``attempt`` failed attempts."""
        if kind is FailureKind.RATE_LIMITED:
            return self.rate_limit_floor_ms + attempt * self.rate_limit_step_ms
        return int(self.base_delay_ms * self.backoff_factor**attempt)


async def attempt_synthesis(synthesize: Synthesizer, text: str) -> AttemptOutcome:
    """Run one synthesis call and classify its result."""
    try:
        pcm = await synthesize(text)
    except asyncio.CancelledError:
        raise
    except MissingCredentialError as exc:
        return FatalFailure(exc.message)
    except GeminiError as exc:
        kind = FailureKind.RATE_LIMITED if exc.is_rate_limited else FailureKind.TRANSIENT
        return RetryableFailure(kind, exc.message)
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        status_code = getattr(exc, "status_code", None) or getattr(exc, "status", None)
        if is_rate_limit_failure(status_code if isinstance(status_code, int) else None, message):
            return RetryableFailure(FailureKind.RATE_LIMITED, message)
        return RetryableFailure(FailureKind.TRANSIENT, message)

    if not pcm:
        return RetryableFailure(FailureKind.TRANSIENT, "No audio data returned")
    return Success(bytes(pcm))


async def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class GenerationOrchestrator:
    """Sequential chunk driver with adaptive backoff."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def run(
        self,
        state: RunState,
        synthesize: Synthesizer,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_chunk_complete: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunOutcome:
        """
        Generate audio for every chunk from ``state.start_index`` onwards.

        Args:
            state: Run context; the orchestrator is its only writer
            synthesize: Coroutine returning raw PCM for one chunk of text
            on_progress: Called whenever progress or status text changes
            on_chunk_complete: Called after each chunk's PCM is recorded
            cancel_event: Cooperative cancellation token

        Returns:
            RunOutcome.COMPLETED or RunOutcome.CANCELLED

        Raises:
            GenerationFailedError: When a chunk exhausts its attempts or
                trips the fail-fast rule
        """
        state.is_running = True
        state.last_error = None
        total = state.total_to_generate
        logger.info(
            "Starting generation of %d chunk(s) from chunk %d",
            total,
            state.start_index + 1,
        )

        try:
            for position in range(state.start_index, state.total_chunks):
                if self._is_cancelled(state, cancel_event):
                    logger.info("Generation cancelled before chunk %d", position + 1)
                    return RunOutcome.CANCELLED

                chunk = state.chunks[position]
                state.current_chunk = position + 1
                state.progress = ((position - state.start_index) / total) * 100
                await _notify(on_progress, state)

                pcm = await self._generate_chunk(
                    state, chunk, synthesize, on_progress, cancel_event
                )
                if pcm is None:
                    logger.info("Generation cancelled while retrying chunk %d", position + 1)
                    return RunOutcome.CANCELLED

                chunk.pcm = pcm
                chunk.status = ChunkStatus.COMPLETED
                state.status_message = None
                state.completed_in_run.append(chunk.index)
                logger.info(
                    "Chunk %d/%d completed (%d bytes)",
                    position + 1,
                    state.total_chunks,
                    len(pcm),
                )
                await _notify(on_chunk_complete, state, chunk)

                if position < state.total_chunks - 1:
                    await self._sleep(state.inter_chunk_delay_ms / 1000)

            state.progress = 100.0
            await _notify(on_progress, state)
            logger.info("Generation complete")
            return RunOutcome.COMPLETED
        except GenerationFailedError as exc:
            state.last_error = exc.message
            state.status_message = None
            logger.error("Generation failed at chunk %d: %s", exc.chunk_position, exc.message)
            raise
        finally:
            state.is_running = False

    async def _generate_chunk(
        self,
        state: RunState,
        chunk: ChunkResult,
        synthesize: Synthesizer,
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[bytes]:
        """Retry loop for a single chunk; None means the run was cancelled."""
        policy = self.policy
        position = chunk.index + 1
        consecutive_other_failures = 0
        last_failure: Optional[RetryableFailure] = None

        for attempt in range(1, policy.max_attempts + 1):
            chunk.status = ChunkStatus.IN_PROGRESS
            outcome = await attempt_synthesis(synthesize, chunk.text)

            if isinstance(outcome, Success):
                return outcome.pcm

            chunk.status = ChunkStatus.FAILED

            if isinstance(outcome, FatalFailure):
                raise GenerationFailedError(
                    position,
                    f"Failed to generate part {position}. {outcome.message}",
                )

            last_failure = outcome
            rate_limited = outcome.kind is FailureKind.RATE_LIMITED
            logger.warning(
                "Attempt %d failed for chunk %d. Rate limit: %s. %s",
                attempt,
                position,
                rate_limited,
                outcome.message,
            )

            if rate_limited:
                consecutive_other_failures = 0
                state.ratchet_delay(policy.rate_limited_inter_chunk_delay_ms)
            else:
                consecutive_other_failures += 1
                if consecutive_other_failures >= policy.fail_fast_after:
                    raise GenerationFailedError(
                        position,
                        f"Failed to generate part {position} after "
                        f"{attempt} attempts. {outcome.message}",
                    )

            if attempt >= policy.max_attempts:
                break

            delay_ms = policy.backoff_ms(outcome.kind, attempt)
            if rate_limited:
                state.status_message = (
                    f"Rate limit hit. Pausing for {delay_ms / 1000:g}s before "
                    f"retrying chunk {position}..."
                )
            else:
                state.status_message = (
                    f"Error encountered. Retrying chunk {position} in "
                    f"{delay_ms / 1000:g}s..."
                )
            chunk.retry_count += 1
            await _notify(on_progress, state)

            await self._sleep(delay_ms / 1000)
            if self._is_cancelled(state, cancel_event):
                return None

        assert last_failure is not None
        detail = (
            RATE_LIMIT_EXHAUSTED_MESSAGE
            if last_failure.kind is FailureKind.RATE_LIMITED
            else last_failure.message
        )
        raise GenerationFailedError(
            position,
            f"Failed to generate part {position} after {policy.max_attempts} "
            f"attempts. {detail}",
        )

    @staticmethod
    def _is_cancelled(state: RunState, cancel_event: Optional[asyncio.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            state.cancel_requested = True
        return state.cancel_requested


__all__ = [
    "AttemptOutcome",
    "FailureKind",
    "FatalFailure",
    "GenerationFailedError",
    "GenerationOrchestrator",
    "RetryPolicy",
    "RetryableFailure",
    "RunOutcome",
    "Success",
    "Synthesizer",
    "attempt_synthesis",
]
