"""
PCM Buffer Assembler.

Packages raw 16-bit little-endian PCM produced by the speech API into
downloadable containers:

- concatenate_pcm(): gapless ordered concatenation
- pcm_to_wav(): canonical 44-byte RIFF/WAVE header + PCM payload
- pcm_to_mp3(): block-wise encoding through an MP3 encoder

WAV packaging is pure Python and cannot fail for well-formed input. MP3
packaging needs an external encoder; the default one pipes samples into an
``ffmpeg`` process and raises EncodingUnavailableError when ffmpeg is missing
or fails.
"""

from __future__ import annotations

import logging
import shutil
import struct
import subprocess
import tempfile
from contextlib import suppress
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .run_state import ChunkResult, ChunkStatus

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000
NUM_CHANNELS = 1
BITS_PER_SAMPLE = 16
MP3_BLOCK_SAMPLES = 1152
DEFAULT_MP3_BITRATE_KBPS = 128

WAV_HEADER_SIZE = 44


class AudioFormat(str, Enum):
    """Downloadable container formats."""

    WAV = "wav"
    MP3 = "mp3"

    @property
    def media_type(self) -> str:
        return "audio/wav" if self is AudioFormat.WAV else "audio/mpeg"


class EncodingUnavailableError(RuntimeError):
    """Raised when the MP3 encoder is missing or fails to encode."""


class Mp3Encoder(Protocol):
    """Incremental encoder contract: feed sample blocks, flush, then close."""

    def encode(self, pcm_block: bytes) -> bytes: ...

    def flush(self) -> bytes: ...

    def close(self) -> None: ...


Mp3EncoderFactory = Callable[[int, int, int], Mp3Encoder]


def concatenate_pcm(buffers: Iterable[bytes]) -> bytes:
    """Concatenate PCM buffers in order with no gaps or resampling."""
    return b"".join(buffers)


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    channels: int = NUM_CHANNELS,
) -> bytes:
    """Wrap raw PCM in a canonical 44-byte WAV header."""
    data_length = len(pcm)
    block_align = channels * (BITS_PER_SAMPLE // 8)
    byte_rate = sample_rate * block_align
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_length,  # ChunkSize
        b"WAVE",
        b"fmt ",
        16,  # Subchunk1Size for PCM
        1,  # AudioFormat: PCM
        channels,
        sample_rate,
        byte_rate,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_length,  # Subchunk2Size
    )
    return header + bytes(pcm)


class FfmpegMp3Encoder:
    """MP3 encoder backed by an ``ffmpeg``/libmp3lame subprocess.

    Sample blocks are written to ffmpeg's stdin as they arrive. Encoded frames
    are spooled to a temporary file so a full stdout pipe can never stall the
    writer; they are returned in one piece by flush().
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = NUM_CHANNELS,
        bitrate_kbps: int = DEFAULT_MP3_BITRATE_KBPS,
        ffmpeg_path: Optional[str] = None,
    ) -> None:
        ffmpeg = ffmpeg_path or shutil.which("ffmpeg")
        if ffmpeg is None:
            raise EncodingUnavailableError(
                "MP3 encoder (ffmpeg with libmp3lame) is not available."
            )
        self._output = tempfile.TemporaryFile()
        self._errors = tempfile.TemporaryFile()
        cmd = [
            ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-f", "s16le",
            "-ar", str(sample_rate),
            "-ac", str(channels),
            "-i", "pipe:0",
            "-c:a", "libmp3lame",
            "-b:a", f"{bitrate_kbps}k",
            "-f", "mp3",
            "pipe:1",
        ]
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=self._output,
                stderr=self._errors,
            )
        except OSError as exc:
            self._output.close()
            self._errors.close()
            raise EncodingUnavailableError(f"Failed to start ffmpeg: {exc}") from exc

    def encode(self, pcm_block: bytes) -> bytes:
        assert self._proc.stdin is not None
        try:
            self._proc.stdin.write(pcm_block)
        except (BrokenPipeError, ValueError) as exc:
            # ffmpeg exited before reading all input
            raise EncodingUnavailableError(self._failure_message(exc)) from exc
        # Frames become available only after flush()
        return b""

    def flush(self) -> bytes:
        try:
            if self._proc.stdin is not None:
                self._proc.stdin.close()
        except BrokenPipeError as exc:
            raise EncodingUnavailableError(self._failure_message(exc)) from exc
        return_code = self._proc.wait()
        if return_code != 0:
            raise EncodingUnavailableError(
                self._failure_message(f"exit status {return_code}")
            )
        self._output.seek(0)
        return self._output.read()

    def close(self) -> None:
        """Reap the ffmpeg process and release the spool files."""
        if self._proc.poll() is None:
            self._proc.kill()
        if self._proc.stdin is not None:
            with suppress(OSError):
                self._proc.stdin.close()
        self._proc.wait()
        self._output.close()
        self._errors.close()

    def _failure_message(self, cause: object) -> str:
        if self._proc.stdin is not None:
            with suppress(OSError):
                self._proc.stdin.close()
        self._proc.wait()
        self._errors.seek(0)
        stderr = self._errors.read().decode("utf-8", errors="replace").strip()
        logger.error("ffmpeg MP3 encoding failed (%s): %s", cause, stderr)
        return f"MP3 encoding failed: {stderr or cause}"


def pcm_to_mp3(
    pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    channels: int = NUM_CHANNELS,
    bitrate_kbps: int = DEFAULT_MP3_BITRATE_KBPS,
    encoder_factory: Optional[Mp3EncoderFactory] = None,
) -> bytes:
    """
    Encode raw PCM to MP3.

    The bytes are treated as 16-bit signed little-endian samples and fed to
    the encoder in blocks of 1152 samples. Every non-empty frame buffer the
    encoder returns is kept, the encoder is flushed at the end, and all
    buffers are concatenated.

    Raises:
        EncodingUnavailableError: If no MP3 encoder can be created or the
            encoder fails part way
    """
    factory = encoder_factory or FfmpegMp3Encoder
    encoder = factory(sample_rate, channels, bitrate_kbps)

    # A trailing odd byte is not a full sample
    usable = len(pcm) - (len(pcm) % 2)
    block_bytes = MP3_BLOCK_SAMPLES * 2
    frames: list[bytes] = []

    try:
        for offset in range(0, usable, block_bytes):
            encoded = encoder.encode(bytes(pcm[offset:min(offset + block_bytes, usable)]))
            if encoded:
                frames.append(encoded)

        tail = encoder.flush()
        if tail:
            frames.append(tail)
    finally:
        encoder.close()

    mp3 = b"".join(frames)
    logger.debug("Encoded %d PCM bytes to %d MP3 bytes", usable, len(mp3))
    return mp3


def package_audio(
    pcm: bytes,
    fmt: AudioFormat,
    *,
    sample_rate: int = SAMPLE_RATE,
    channels: int = NUM_CHANNELS,
    bitrate_kbps: int = DEFAULT_MP3_BITRATE_KBPS,
    encoder_factory: Optional[Mp3EncoderFactory] = None,
) -> bytes:
    """Package PCM into the requested container format."""
    if fmt is AudioFormat.WAV:
        return pcm_to_wav(pcm, sample_rate, channels)
    return pcm_to_mp3(
        pcm,
        sample_rate,
        channels,
        bitrate_kbps,
        encoder_factory=encoder_factory,
    )


def completed_with_audio(chunks: Sequence[ChunkResult]) -> list[ChunkResult]:
    """Return completed chunks that carry PCM, ordered by index."""
    ready = [
        chunk
        for chunk in chunks
        if chunk.status is ChunkStatus.COMPLETED and chunk.pcm
    ]
    ready.sort(key=lambda chunk: chunk.index)
    return ready


def assemble_completed(chunks: Sequence[ChunkResult]) -> bytes:
    """
    Concatenate the PCM of every completed chunk in index order.

    Skipped chunks (completed without PCM) contribute nothing. Safe to call
    repeatedly while a run is still in flight.
    """
    return concatenate_pcm(chunk.pcm or b"" for chunk in completed_with_audio(chunks))


__all__ = [
    "AudioFormat",
    "BITS_PER_SAMPLE",
    "DEFAULT_MP3_BITRATE_KBPS",
    "EncodingUnavailableError",
    "FfmpegMp3Encoder",
    "MP3_BLOCK_SAMPLES",
    "Mp3Encoder",
    "NUM_CHANNELS",
    "SAMPLE_RATE",
    "WAV_HEADER_SIZE",
    "assemble_completed",
    "completed_with_audio",
    "concatenate_pcm",
    "package_audio",
    "pcm_to_mp3",
    "pcm_to_wav",
]
