import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Protocol

from secure_drive_client.config import MediaConfig
from secure_drive_client.exceptions import MetadataExtractionFailed
from secure_drive_client.models.media import VideoProbe

logger = logging.getLogger(__name__)


class VideoProber(Protocol):
    async def probe(self, path: Path) -> VideoProbe: ...

    async def screenshot(self, path: Path, at_timestamp: str) -> bytes: ...


class FFmpegProber:
    """
    ffprobe / ffmpeg как внешние процессы. Аргументы передаются списком, shell не используется.
    """

    def __init__(self, settings: MediaConfig):
        self._ffprobe = settings.ffprobe_path
        self._ffmpeg = settings.ffmpeg_path
        self._thumb_size = settings.thumbnail_size
        self._timeout = settings.probe_timeout

    async def _run(self, *cmd: str) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MetadataExtractionFailed(f"Cannot start '{cmd[0]}': {e}") from e
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MetadataExtractionFailed(f"'{cmd[0]}' timed out after {self._timeout}s") from e
        if proc.returncode != 0:
            raise MetadataExtractionFailed(
                f"'{cmd[0]}' exited with {proc.returncode}: {stderr.decode(errors='replace').strip()[:500]}"
            )
        return stdout

    async def probe(self, path: Path) -> VideoProbe:
        out = await self._run(
            self._ffprobe, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(path),
        )
        return parse_probe_output(out)

    async def screenshot(self, path: Path, at_timestamp: str) -> bytes:
        width, _, height = self._thumb_size.partition("x")
        data = await self._run(
            self._ffmpeg, "-v", "error",
            "-ss", at_timestamp,
            "-i", str(path),
            "-frames:v", "1",
            "-vf", f"scale={width}:{height}",
            "-f", "image2", "-c:v", "mjpeg",
            "pipe:1",
        )
        if not data:
            raise MetadataExtractionFailed(f"ffmpeg produced no frame at {at_timestamp}")
        return data


def parse_probe_output(raw: bytes) -> VideoProbe:
    """Разбирает JSON ffprobe: длительность (floor), размеры и кодек первого видеопотока."""
    try:
        info = json.loads(raw)
        duration = float((info.get("format") or {}).get("duration") or 0)
    except (ValueError, TypeError) as e:
        raise MetadataExtractionFailed(f"Unreadable ffprobe output: {e}") from e

    video = next((s for s in info.get("streams") or [] if s.get("codec_type") == "video"), None)
    if video is None:
        logger.debug("ffprobe found no video stream")
        return VideoProbe(duration_seconds=math.floor(duration))
    return VideoProbe(
        duration_seconds=math.floor(duration),
        width=video.get("width"),
        height=video.get("height"),
        codec_name=video.get("codec_name"),
    )
