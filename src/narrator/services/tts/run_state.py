"""Per-run state owned by the generation orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .text_segmenter import TextChunk

DEFAULT_INTER_CHUNK_DELAY_MS = 2000


class ChunkStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ChunkResult:
    """Synthesis result for one chunk.

    Only the orchestrator writes to these. ``failed -> in_progress`` on retry
    is the only transition that moves backwards.
    """

    index: int
    text: str
    status: ChunkStatus = ChunkStatus.PENDING
    pcm: Optional[bytes] = None
    retry_count: int = 0


@dataclass
class RunState:
    """Mutable context of a single generation run.

    ``inter_chunk_delay_ms`` only ever ratchets up within a run.
    """

    chunks: List[ChunkResult]
    start_index: int = 0
    inter_chunk_delay_ms: int = DEFAULT_INTER_CHUNK_DELAY_MS
    is_running: bool = False
    cancel_requested: bool = False
    last_error: Optional[str] = None
    status_message: Optional[str] = None
    progress: float = 0.0
    current_chunk: int = 0
    completed_in_run: List[int] = field(default_factory=list)

    @classmethod
    def for_chunks(
        cls,
        chunks: Sequence[TextChunk],
        start_index: int = 0,
        inter_chunk_delay_ms: int = DEFAULT_INTER_CHUNK_DELAY_MS,
    ) -> "RunState":
        """Create a fresh run; chunks before ``start_index`` count as done."""
        if start_index < 0 or (chunks and start_index >= len(chunks)):
            raise ValueError(
                f"start_index {start_index} is out of range for {len(chunks)} chunks"
            )
        results = [
            ChunkResult(
                index=chunk.index,
                text=chunk.text,
                status=(
                    ChunkStatus.COMPLETED
                    if chunk.index < start_index
                    else ChunkStatus.PENDING
                ),
            )
            for chunk in chunks
        ]
        return cls(
            chunks=results,
            start_index=start_index,
            inter_chunk_delay_ms=inter_chunk_delay_ms,
        )

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def total_to_generate(self) -> int:
        return max(0, len(self.chunks) - self.start_index)

    def ratchet_delay(self, minimum_ms: int) -> None:
        self.inter_chunk_delay_ms = max(self.inter_chunk_delay_ms, minimum_ms)


__all__ = [
    "ChunkResult",
    "ChunkStatus",
    "DEFAULT_INTER_CHUNK_DELAY_MS",
    "RunState",
]
