"""
Decode engine and media element collaborators.

The player never decodes media itself. It drives a DecodeEngine through
load/attach/recover/destroy and reacts to the events the engine publishes.
The media element and display surface stand in for the platform's video
element and document (play/pause/mute/fullscreen).

HttpManifestEngine is a lightweight engine that only verifies that a live
HLS source is reachable and well formed, which is enough to drive
availability checks from the server side.
"""

import asyncio
import contextlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
from urllib.parse import urljoin

import httpx

from alhadi.config import HLSEngineConfig
from alhadi.streaming.events import (
    EngineErrorKind,
    EngineEvent,
    FatalError,
    FragLoaded,
    LevelLoaded,
    ManifestParsed,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]

# Vendor-prefixed fullscreen entry points, tried in order
REQUEST_FULLSCREEN_METHODS = (
    "request_fullscreen",
    "webkit_request_fullscreen",
    "moz_request_full_screen",
    "ms_request_fullscreen",
)
EXIT_FULLSCREEN_METHODS = (
    "exit_fullscreen",
    "webkit_exit_fullscreen",
    "moz_cancel_full_screen",
    "ms_exit_fullscreen",
)
FULLSCREEN_CHANGE_EVENTS = (
    "fullscreenchange",
    "webkitfullscreenchange",
    "mozfullscreenchange",
    "MSFullscreenChange",
)


class MediaElement(ABC):
    """
    The element playback is attached to.

    Implementations expose whichever of REQUEST_FULLSCREEN_METHODS the
    platform supports.
    """

    muted: bool = False

    @abstractmethod
    async def play(self) -> None:
        """Start playback. May raise when the platform refuses (autoplay policy)."""

    @abstractmethod
    def pause(self) -> None:
        """Pause playback."""


class DisplaySurface(ABC):
    """
    The document hosting the media element.

    Implementations expose whichever of EXIT_FULLSCREEN_METHODS the platform
    supports, and dispatch FULLSCREEN_CHANGE_EVENTS to listeners.
    """

    fullscreen_element: Optional[Any] = None

    @abstractmethod
    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def remove_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        pass


class DecodeEngine(ABC):
    """Abstract base for stream decode engines."""

    @abstractmethod
    def load_source(self, url: str) -> None:
        """Start loading a stream URL."""

    @abstractmethod
    def attach_media(self, element: Optional[MediaElement]) -> None:
        """Bind the engine to a media element."""

    @abstractmethod
    def subscribe(self, callback: EventCallback) -> None:
        """Register a callback for engine events."""

    def recover_media_error(self) -> None:
        """
        Try to recover from a media error in place.

        Raises:
            NotImplementedError: If the engine cannot recover.
        """
        raise NotImplementedError(f"{type(self).__name__} cannot recover media errors")

    @abstractmethod
    def destroy(self) -> None:
        """Release every resource held by the engine."""


# Returns None when the platform cannot run an engine
EngineFactory = Callable[[], Optional[DecodeEngine]]


_STREAM_INF_RE = re.compile(r"^#EXT-X-STREAM-INF", re.IGNORECASE)


def parse_variant_urls(manifest_text: str, base_url: str) -> list[str]:
    """Return the variant playlist URLs of a master playlist, in order."""
    variants: list[str] = []
    lines = [line.strip() for line in manifest_text.splitlines()]
    expecting_uri = False
    for line in lines:
        if not line:
            continue
        if _STREAM_INF_RE.match(line):
            expecting_uri = True
            continue
        if line.startswith("#"):
            continue
        if expecting_uri:
            variants.append(urljoin(base_url, line))
            expecting_uri = False
    return variants


def first_segment_url(playlist_text: str, base_url: str) -> Optional[str]:
    """Return the first media segment URL of a media playlist."""
    for line in playlist_text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            return urljoin(base_url, line)
    return None


class HttpManifestEngine(DecodeEngine):
    """
    Availability-probe engine over httpx.

    Fetches the playlist, follows the first variant and touches the first
    segment, publishing the same milestones a full decoder would:
    ManifestParsed, LevelLoaded, FragLoaded. Transport failures and HTTP
    error statuses are fatal network errors; a body that is not an HLS
    playlist is a fatal media error. `recover_media_error()` reloads the
    current source.
    """

    def __init__(
        self,
        settings: Optional[HLSEngineConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or HLSEngineConfig()
        self._client = client
        self._listeners: list[EventCallback] = []
        self._media: Optional[MediaElement] = None
        self._source: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._destroyed = False

    @property
    def media(self) -> Optional[MediaElement]:
        return self._media

    @property
    def source(self) -> Optional[str]:
        return self._source

    def subscribe(self, callback: EventCallback) -> None:
        self._listeners.append(callback)

    def attach_media(self, element: Optional[MediaElement]) -> None:
        self._media = element

    def load_source(self, url: str) -> None:
        if self._destroyed:
            raise RuntimeError("Engine has been destroyed")
        self._source = url
        self._restart()

    def recover_media_error(self) -> None:
        if self._source is None or self._destroyed:
            raise NotImplementedError("No source to recover")
        logger.info(f"Reloading {self._source} to recover from media error")
        self._restart()

    def destroy(self) -> None:
        self._destroyed = True
        self._listeners.clear()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait(self) -> None:
        """Wait for the current load to finish (used by probes and tests)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    def _restart(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = asyncio.create_task(self._load(self._source))

    async def _load(self, url: str) -> None:
        if self._client is not None:
            await self._run(self._client, url)
            return
        async with httpx.AsyncClient(follow_redirects=True) as client:
            await self._run(client, url)

    async def _run(self, client: httpx.AsyncClient, url: str) -> None:
        try:
            manifest = await self._fetch_text(
                client, url, self.settings.manifest_loading_timeout
            )
        except httpx.HTTPError as e:
            self._emit(FatalError(EngineErrorKind.NETWORK, f"manifest load failed: {e}"))
            return

        if not manifest.lstrip().startswith("#EXTM3U"):
            self._emit(FatalError(EngineErrorKind.MEDIA, "response is not an HLS playlist"))
            return

        variants = parse_variant_urls(manifest, url)
        self._emit(ManifestParsed(url=url, levels=len(variants) or 1))

        playlist_url, playlist = url, manifest
        if variants:
            index = min(max(self.settings.start_level, 0), len(variants) - 1)
            playlist_url = variants[index]
            try:
                playlist = await self._fetch_text(
                    client, playlist_url, self.settings.level_loading_timeout
                )
            except httpx.HTTPError as e:
                self._emit(FatalError(EngineErrorKind.NETWORK, f"level load failed: {e}"))
                return
        self._emit(LevelLoaded(url=playlist_url))

        segment_url = first_segment_url(playlist, playlist_url)
        if segment_url is None:
            return
        try:
            async with client.stream(
                "GET", segment_url, timeout=self.settings.frag_loading_timeout
            ) as response:
                response.raise_for_status()
        except httpx.HTTPError as e:
            self._emit(FatalError(EngineErrorKind.NETWORK, f"fragment load failed: {e}"))
            return
        self._emit(FragLoaded(url=segment_url))

    @staticmethod
    async def _fetch_text(client: httpx.AsyncClient, url: str, timeout: float) -> str:
        response = await client.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text

    def _emit(self, event: EngineEvent) -> None:
        if self._destroyed:
            return
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Engine event callback failed: {e}", exc_info=True)
