"""Application services for Al-Hadi Media."""

from alhadi.services.program_media import ProgramMediaService, ProgramNotFoundError

__all__ = ["ProgramMediaService", "ProgramNotFoundError"]
