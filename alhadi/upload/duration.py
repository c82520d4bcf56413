"""
Video duration probing.

Reads the duration of an uploaded video from its public URL with ffprobe.
A probe failure never fails the upload; the caller gets a placeholder.
"""

import asyncio
import json
import logging
import shutil
from typing import Optional

logger = logging.getLogger(__name__)

PLACEHOLDER_DURATION = "00:00"


def format_duration(seconds: float) -> str:
    """Format seconds as `m:ss`."""
    total = max(int(seconds), 0)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


class DurationProbe:
    """Reads media duration with ffprobe."""

    def __init__(
        self,
        ffprobe_path: Optional[str] = None,
        timeout: float = 30.0,
        placeholder: str = PLACEHOLDER_DURATION,
    ):
        self.ffprobe_path = ffprobe_path or shutil.which("ffprobe") or "ffprobe"
        self.timeout = timeout
        self.placeholder = placeholder

    async def probe_seconds(self, url: str) -> float:
        """
        Read the duration in seconds.

        Raises:
            RuntimeError: ffprobe failed, timed out or produced no duration.
        """
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            url,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RuntimeError(f"FFprobe could not start: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise RuntimeError(f"FFprobe timeout for {url}")

        if process.returncode != 0:
            error = stderr.decode("utf-8", errors="replace") if stderr else "Unknown error"
            raise RuntimeError(f"FFprobe failed: {error}")

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
            return float(data["format"]["duration"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise RuntimeError(f"FFprobe output parse error: {e}") from e

    async def probe(self, url: str) -> str:
        """Duration as `m:ss`, or the placeholder when it cannot be read."""
        try:
            seconds = await self.probe_seconds(url)
        except RuntimeError as e:
            logger.warning(f"Error loading video metadata, using placeholder: {e}")
            return self.placeholder
        duration = format_duration(seconds)
        logger.info(f"Video duration calculated: {duration}")
        return duration
