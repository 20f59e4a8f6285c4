"""ffmpeg invocation for rendering a still image and an audio track into an MP4."""

import asyncio
import subprocess
from pathlib import Path

from loguru import logger

from backdrop.config import EncoderSettings
from backdrop.exceptions import EncoderError

STDERR_LOG_LIMIT = 500


def build_ffmpeg_command(
    image: Path,
    audio: Path,
    *,
    ffmpeg_path: str = "ffmpeg",
    duration: float | None = None,
) -> list[str]:
    """Loop the image at 1 fps over the audio and write fragmented MP4 to stdout.

    Output stops at the shorter stream, or at `duration` seconds when given.
    """
    stop = ["-t", f"{duration:.3f}"] if duration is not None else ["-shortest"]
    return [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-loop", "1",
        "-framerate", "1",
        "-i", str(image),
        "-i", str(audio),
        *stop,
        "-c:a", "copy",
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-tune", "stillimage",
        "-pix_fmt", "yuv420p",
        "-movflags", "frag_keyframe+empty_moov",
        "-f", "mp4",
        "pipe:1",
    ]  # fmt: skip


def _truncate(stderr: bytes) -> str:
    text = stderr.decode(errors="replace").strip()
    return text[:STDERR_LOG_LIMIT] + "..." if len(text) > STDERR_LOG_LIMIT else text


async def _run(command: list[str], timeout: int | None) -> subprocess.CompletedProcess[bytes]:
    try:
        return await asyncio.to_thread(
            subprocess.run,
            command,
            capture_output=True,
            stdin=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise EncoderError(f"{command[0]} exceeded timeout of {timeout}s") from e
    except OSError as e:
        raise EncoderError(f"Failed to spawn {command[0]}: {e}") from e


async def probe_duration(path: Path, *, ffprobe_path: str = "ffprobe", timeout: int | None = None) -> float:
    """Read a media file's duration in seconds with ffprobe."""
    command = [
        ffprobe_path,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]  # fmt: skip
    result = await _run(command, timeout)
    if result.returncode != 0:
        raise EncoderError(
            f"ffprobe failed with exit code {result.returncode}",
            exit_code=result.returncode,
            stderr=_truncate(result.stderr),
        )
    try:
        return float(result.stdout.decode().strip())
    except ValueError as e:
        raise EncoderError(f"ffprobe returned no usable duration for {path}") from e


async def render_video(image: Path, audio: Path, settings: EncoderSettings) -> bytes:
    """Run ffmpeg on a worker thread and return the encoded MP4 bytes.

    Raises:
        EncoderError: ffmpeg could not be spawned, timed out, exited non-zero or
            wrote nothing to stdout.
    """
    duration = None
    if settings.explicit_duration:
        duration = await probe_duration(audio, ffprobe_path=settings.ffprobe_path, timeout=settings.timeout_seconds)

    command = build_ffmpeg_command(image, audio, ffmpeg_path=settings.ffmpeg_path, duration=duration)
    logger.debug(f"Running {' '.join(command)}")
    result = await _run(command, settings.timeout_seconds)

    stderr = _truncate(result.stderr)
    if result.returncode != 0:
        logger.error(f"ffmpeg exited with code {result.returncode}: {stderr}")
        raise EncoderError(
            f"ffmpeg failed with exit code {result.returncode}",
            exit_code=result.returncode,
            stderr=stderr,
        )
    if not result.stdout:
        raise EncoderError("ffmpeg produced no output", exit_code=0, stderr=stderr)
    if stderr:
        logger.debug(f"ffmpeg stderr: {stderr}")

    return result.stdout
