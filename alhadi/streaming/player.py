"""
Live stream player state machine.

A StreamPlayer owns one StreamSession for the lifetime of a playback view:
it walks an ordered list of candidate stream URLs, drives a decode engine
against the active one, and moves between three states:

    checking -> available | unavailable

Both outcomes can go back to checking through `retry()`. Fatal network
errors and load timeouts move to the next candidate; once the list is
exhausted the session is unavailable until retried. Media errors get one
in-place recovery per candidate.

Every engine instance and timer is owned by the player and released on
candidate change, retry and unmount.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from alhadi import messages
from alhadi.config import StreamConfig, get_config
from alhadi.errors import (
    AlhadiError,
    ClassifiedError,
    ErrorClassifier,
    ErrorType,
    StreamMediaError,
    StreamNetworkError,
    StreamTimeoutError,
)
from alhadi.streaming.engine import (
    EXIT_FULLSCREEN_METHODS,
    FULLSCREEN_CHANGE_EVENTS,
    REQUEST_FULLSCREEN_METHODS,
    DecodeEngine,
    DisplaySurface,
    EngineFactory,
    MediaElement,
)
from alhadi.streaming.events import (
    EngineErrorKind,
    EngineEvent,
    FatalError,
    FragLoaded,
    LevelLoaded,
    ManifestParsed,
    NonFatalError,
)
from alhadi.utils.progress import ProgressSimulator

logger = logging.getLogger(__name__)

# Fatal engine errors by kind; anything else is terminal
ENGINE_ERRORS: dict[EngineErrorKind, type[AlhadiError]] = {
    EngineErrorKind.NETWORK: StreamNetworkError,
    EngineErrorKind.MEDIA: StreamMediaError,
}


class StreamStatus(str, Enum):
    """Stream session states."""

    CHECKING = "checking"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass
class StreamSession:
    """
    Transient playback state for one view.

    Tracks the candidate being tried, the current status and everything the
    controls need to render.
    """

    candidate_urls: list[str]
    active_index: int = 0
    status: StreamStatus = StreamStatus.CHECKING
    last_error: Optional[str] = None
    loading_progress: float = 0.0
    created_at: datetime = field(default_factory=datetime.utcnow)

    # Controls
    is_loading: bool = False
    is_playing: bool = False
    is_muted: bool = False
    is_fullscreen: bool = False
    transient_error: Optional[str] = None

    # One in-place media recovery per candidate
    media_recovery_attempted: bool = False

    @property
    def active_url(self) -> Optional[str]:
        if 0 <= self.active_index < len(self.candidate_urls):
            return self.candidate_urls[self.active_index]
        return None

    @property
    def has_next_candidate(self) -> bool:
        return self.active_index < len(self.candidate_urls) - 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "status": self.status.value,
            "active_index": self.active_index,
            "active_url": self.active_url,
            "candidate_count": len(self.candidate_urls),
            "last_error": self.last_error,
            "loading_progress": round(self.loading_progress),
            "is_playing": self.is_playing,
            "is_muted": self.is_muted,
            "is_fullscreen": self.is_fullscreen,
            "transient_error": self.transient_error,
        }


SessionListener = Callable[[StreamSession], None]


class StreamPlayer:
    """
    Drives a StreamSession from decode engine events and timers.

    Must be used from within a running event loop: timers are asyncio tasks.

    Usage:
        player = StreamPlayer(engine_factory=HttpManifestEngine, media=video)
        player.mount()
        ...
        await player.toggle_play()
        ...
        player.unmount()
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        media: Optional[MediaElement] = None,
        surface: Optional[DisplaySurface] = None,
        candidate_urls: Optional[list[str]] = None,
        settings: Optional[StreamConfig] = None,
    ):
        self.settings = settings or get_config().stream
        urls = candidate_urls if candidate_urls is not None else self.settings.candidate_urls
        self.session = StreamSession(candidate_urls=list(urls))
        self._engine_factory = engine_factory
        self._media = media
        self._surface = surface
        self._engine: Optional[DecodeEngine] = None
        self._timeout_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._mounted = False
        self._listeners: list[SessionListener] = []
        self._settled = asyncio.Event()
        self._progress = ProgressSimulator(
            interval=self.settings.progress_interval,
            step_max=self.settings.progress_step_max,
            cap=self.settings.progress_cap,
            reset_grace=self.settings.reset_grace,
            on_change=self._on_progress,
        )

    @property
    def engine(self) -> Optional[DecodeEngine]:
        return self._engine

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def progress(self) -> ProgressSimulator:
        return self._progress

    def add_listener(self, listener: SessionListener) -> None:
        """Register a callback invoked after every state change."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        """Start checking the first candidate."""
        if self._mounted:
            return
        self._mounted = True
        if self._surface is not None:
            for event in FULLSCREEN_CHANGE_EVENTS:
                self._surface.add_event_listener(event, self.on_fullscreen_change)
        self._enter_checking(0)

    def unmount(self) -> None:
        """Release the engine, timers and platform listeners."""
        if not self._mounted:
            return
        self._mounted = False
        self._generation += 1
        self._cancel_timeout()
        self._release_engine()
        self._progress.cancel()
        if self._surface is not None:
            for event in FULLSCREEN_CHANGE_EVENTS:
                self._surface.remove_event_listener(event, self.on_fullscreen_change)
        logger.info("Stream player unmounted")

    def retry(self) -> None:
        """Start over from the first candidate, whatever happened before."""
        if not self._mounted:
            self.mount()
            return
        logger.info("Stream retry requested")
        self.session.last_error = None
        self.session.transient_error = None
        self.session.is_playing = False
        self._enter_checking(0)

    async def wait_settled(self, timeout: Optional[float] = None) -> StreamStatus:
        """Wait until the session leaves `checking`."""
        await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        return self.session.status

    # ------------------------------------------------------------------
    # Transition function
    # ------------------------------------------------------------------

    def handle_event(self, event: EngineEvent) -> None:
        """Apply an engine event to the current candidate."""
        self._dispatch(self._generation, event)

    def _dispatch(self, generation: int, event: EngineEvent) -> None:
        if generation != self._generation or not self._mounted:
            logger.debug(f"Ignoring stale engine event: {event!r}")
            return

        session = self.session

        if isinstance(event, ManifestParsed):
            logger.info(f"Manifest parsed for {session.active_url}")
            self._cancel_timeout()
            session.status = StreamStatus.AVAILABLE
            session.last_error = None
            session.is_loading = False
            self._progress.complete()
            self._notify()

        elif isinstance(event, LevelLoaded):
            if session.status == StreamStatus.CHECKING:
                self._progress.milestone(self.settings.level_loaded_progress)

        elif isinstance(event, FragLoaded):
            if session.status == StreamStatus.CHECKING:
                self._progress.milestone(self.settings.frag_loaded_progress)

        elif isinstance(event, FatalError):
            logger.error(
                f"Fatal {event.kind.value} error on candidate "
                f"{session.active_index} ({session.active_url}): {event.details}"
            )
            error_class = ENGINE_ERRORS.get(event.kind, AlhadiError)
            self._fail_candidate(error_class(event.details or f"fatal {event.kind.value} error"))

        elif isinstance(event, NonFatalError):
            logger.warning(f"Non-fatal {event.kind.value} error: {event.details}")

    def _fail_candidate(
        self, error: BaseException, fallback_message: str = messages.STREAM_PLAYBACK_ERROR
    ) -> None:
        """
        Apply the fallback policy to a failure of the active candidate.

        Network and timeout errors move to the next candidate, media errors
        get one in-place recovery, everything else ends the session.
        """
        classified = ErrorClassifier.classify(error)
        if classified.error_type == ErrorType.MEDIA:
            self._recover_media(classified)
        elif classified.falls_back:
            self._advance(fallback_message, classified.message)
        else:
            self._become_unavailable(messages.STREAM_PLAYBACK_ERROR, classified.message)

    def _recover_media(self, failure: ClassifiedError) -> None:
        session = self.session
        if session.media_recovery_attempted or self._engine is None:
            logger.warning("Media recovery already attempted, treating as network error")
            self._advance(messages.STREAM_PLAYBACK_ERROR, failure.message)
            return

        session.media_recovery_attempted = True
        try:
            self._engine.recover_media_error()
        except Exception as e:
            classified = ErrorClassifier.classify(e)
            logger.warning(
                f"Media recovery failed ({classified.error_type.value}): "
                f"{classified.message}"
            )
            self._advance(messages.STREAM_PLAYBACK_ERROR, failure.message)
            return
        logger.info(f"Attempting in-place media recovery for {session.active_url}")

    def _advance(self, message: str, details: str = "") -> None:
        """Move to the next candidate, or give up when there is none."""
        session = self.session
        if session.has_next_candidate:
            logger.info(
                f"Trying next stream URL ({session.active_index + 1}/"
                f"{len(session.candidate_urls) - 1})"
            )
            self._enter_checking(session.active_index + 1)
        else:
            self._become_unavailable(message, details)

    def _enter_checking(self, index: int) -> None:
        self._generation += 1
        generation = self._generation
        self._cancel_timeout()
        self._release_engine()

        session = self.session
        session.active_index = index
        session.status = StreamStatus.CHECKING
        session.is_loading = True
        session.is_playing = False
        session.media_recovery_attempted = False
        self._notify()

        if not session.candidate_urls:
            self._become_unavailable(messages.STREAM_UNAVAILABLE, "no candidate URLs")
            return

        url = session.candidate_urls[index]
        logger.info(f"Loading stream {index + 1}/{len(session.candidate_urls)}: {url}")
        self._progress.start()

        try:
            engine = self._engine_factory()
        except Exception as e:
            logger.error(f"Failed to create decode engine: {e}", exc_info=True)
            self._become_unavailable(messages.STREAM_ENGINE_LOAD_ERROR, str(e))
            return

        if engine is None:
            self._become_unavailable(messages.STREAM_UNSUPPORTED, "decode engine unsupported")
            return

        self._engine = engine
        engine.subscribe(lambda event: self._dispatch(generation, event))
        self._timeout_task = asyncio.create_task(
            self._timeout_after(generation, self.settings.load_timeout)
        )

        try:
            engine.load_source(url)
            if generation == self._generation:
                engine.attach_media(self._media)
        except Exception as e:
            if generation != self._generation:
                return
            classified = ErrorClassifier.classify(e)
            logger.error(
                f"Failed to load {url} ({classified.error_type.value}): {classified.message}"
            )
            if classified.falls_back:
                self._advance(messages.STREAM_PLAYBACK_ERROR, classified.message)
            else:
                self._become_unavailable(messages.STREAM_ENGINE_LOAD_ERROR, classified.message)

    async def _timeout_after(self, generation: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if generation != self._generation:
            return
        self._timeout_task = None
        if self.session.status == StreamStatus.CHECKING:
            logger.warning(
                f"Stream loading timeout after {delay:.0f}s for {self.session.active_url}"
            )
            self._fail_candidate(
                StreamTimeoutError(f"Stream loading timeout after {delay:.0f}s"),
                fallback_message=messages.STREAM_UNAVAILABLE,
            )

    def _become_unavailable(self, message: str, details: str = "") -> None:
        self._generation += 1
        self._cancel_timeout()
        self._release_engine()
        self._progress.fail()

        session = self.session
        session.status = StreamStatus.UNAVAILABLE
        session.last_error = message
        session.is_loading = False
        session.is_playing = False
        logger.error(f"Stream unavailable: {details or message}")
        self._notify()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    async def toggle_play(self) -> None:
        """Pause, or start playback. Only meaningful while available."""
        session = self.session
        if self._media is None or session.status != StreamStatus.AVAILABLE:
            return

        if session.is_playing:
            self._media.pause()
            session.is_playing = False
            self._notify()
            return

        session.is_loading = True
        try:
            await self._media.play()
        except Exception as e:
            logger.error(f"Error playing video: {e}")
            session.is_playing = False
            session.transient_error = messages.STREAM_PLAYBACK_ERROR
        else:
            session.is_playing = True
            session.transient_error = None
        finally:
            session.is_loading = False
            self._notify()

    def toggle_mute(self) -> None:
        if self._media is None:
            return
        self._media.muted = not self.session.is_muted
        self.session.is_muted = self._media.muted
        self._notify()

    def toggle_fullscreen(self) -> bool:
        """
        Enter or exit fullscreen through the first supported entry point.

        Returns:
            True if a fullscreen call was made.
        """
        if self._media is None:
            return False

        if not self.session.is_fullscreen:
            target, names = self._media, REQUEST_FULLSCREEN_METHODS
        else:
            target, names = self._surface, EXIT_FULLSCREEN_METHODS

        for name in names:
            method = getattr(target, name, None)
            if callable(method):
                method()
                return True
        logger.warning("No fullscreen API available on this platform")
        return False

    def on_fullscreen_change(self) -> None:
        """Sync fullscreen state from the platform after a change event."""
        element = self._surface.fullscreen_element if self._surface else None
        self.session.is_fullscreen = element is not None
        self._notify()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _release_engine(self) -> None:
        if self._engine is not None:
            try:
                self._engine.destroy()
            except Exception as e:
                logger.error(f"Failed to destroy decode engine: {e}")
            self._engine = None

    def _cancel_timeout(self) -> None:
        if self._timeout_task is not None:
            self._timeout_task.cancel()
            self._timeout_task = None

    def _on_progress(self, value: float) -> None:
        self.session.loading_progress = value

    def _notify(self) -> None:
        if self.session.status == StreamStatus.CHECKING:
            self._settled.clear()
        else:
            self._settled.set()
        for listener in list(self._listeners):
            try:
                listener(self.session)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")


async def check_live_stream(
    engine_factory: EngineFactory,
    candidate_urls: Optional[list[str]] = None,
    settings: Optional[StreamConfig] = None,
) -> StreamSession:
    """
    Run a headless player until the stream settles.

    Returns the settled session: available on the first candidate that
    parses, unavailable once every candidate failed or timed out.
    """
    player = StreamPlayer(
        engine_factory=engine_factory,
        candidate_urls=candidate_urls,
        settings=settings,
    )
    player.mount()
    try:
        await player.wait_settled()
    finally:
        player.unmount()
    return player.session
