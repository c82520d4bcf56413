"""
Al-Hadi Media Streaming Module

Live stream playback with candidate URL fallback.

Components:
- StreamPlayer: checking/available/unavailable state machine
- StreamSession: transient playback state
- DecodeEngine: decode engine collaborator interface
- HttpManifestEngine: httpx-based availability-probe engine
- Engine events: ManifestParsed, LevelLoaded, FragLoaded, FatalError, NonFatalError
"""

from alhadi.streaming.engine import (
    DecodeEngine,
    DisplaySurface,
    EngineFactory,
    HttpManifestEngine,
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
from alhadi.streaming.player import (
    StreamPlayer,
    StreamSession,
    StreamStatus,
    check_live_stream,
)

__all__ = [
    # Engine collaborator
    "DecodeEngine",
    "DisplaySurface",
    "EngineFactory",
    "HttpManifestEngine",
    "MediaElement",
    # Events
    "EngineErrorKind",
    "EngineEvent",
    "FatalError",
    "FragLoaded",
    "LevelLoaded",
    "ManifestParsed",
    "NonFatalError",
    # Player
    "StreamPlayer",
    "StreamSession",
    "StreamStatus",
    "check_live_stream",
]
