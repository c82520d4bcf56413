"""
Decode engine events.

The engine reports everything it does as one of these tagged variants; the
player consumes them through a single transition function.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class EngineErrorKind(str, Enum):
    """Error classes reported by the decode engine."""

    NETWORK = "network"
    MEDIA = "media"
    OTHER = "other"


@dataclass(frozen=True)
class ManifestParsed:
    """The playlist was fetched and parsed; playback can start."""

    url: str = ""
    levels: int = 0


@dataclass(frozen=True)
class LevelLoaded:
    """A variant (quality level) playlist was loaded."""

    url: str = ""


@dataclass(frozen=True)
class FragLoaded:
    """A media fragment was loaded."""

    url: str = ""


@dataclass(frozen=True)
class FatalError:
    """The engine cannot continue without intervention."""

    kind: EngineErrorKind
    details: str = ""
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NonFatalError:
    """The engine hit an error it recovers from on its own."""

    kind: EngineErrorKind
    details: str = ""


EngineEvent = Union[ManifestParsed, LevelLoaded, FragLoaded, FatalError, NonFatalError]
