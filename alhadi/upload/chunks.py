"""
Chunked upload support.

The client splits a file into fixed-size pieces tagged with their index;
the server keeps the pieces in memory per logical upload and joins them in
index order once every piece has arrived. A buffer is always released
after reassembly, whether or not it succeeded.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterator, Optional

from alhadi.errors import AlhadiError, ErrorType

logger = logging.getLogger(__name__)


class ChunkError(AlhadiError):
    """A chunk does not fit the upload it claims to belong to."""

    error_type = ErrorType.VALIDATION


class ChunkLimitError(ChunkError):
    """An upload grew past the size allowed for it."""

    def __init__(self, message: str, limit: int):
        super().__init__(message, {"limit": limit})
        self.limit = limit


@dataclass
class ChunkBuffer:
    """Pieces received so far for one logical upload."""

    upload_id: str
    total_chunks: int
    file_name: str = ""
    chunks: dict[int, bytes] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def received(self) -> int:
        return len(self.chunks)

    @property
    def size_bytes(self) -> int:
        return sum(len(piece) for piece in self.chunks.values())

    @property
    def is_complete(self) -> bool:
        return self.received == self.total_chunks

    @property
    def missing(self) -> list[int]:
        return [i for i in range(self.total_chunks) if i not in self.chunks]

    def age(self, now: Optional[datetime] = None) -> timedelta:
        return (now or datetime.utcnow()) - self.created_at


def split_chunks(data: bytes, chunk_size: int) -> Iterator[tuple[int, int, bytes]]:
    """Yield `(index, total, piece)` for every fixed-size piece of data."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    total = max(1, math.ceil(len(data) / chunk_size))
    for index in range(total):
        yield index, total, data[index * chunk_size:(index + 1) * chunk_size]


class ChunkAssembler:
    """
    In-memory chunk store keyed by upload id.

    Buffers older than `ttl` seconds are evicted whenever the store is
    touched, and no buffer may grow past `max_bytes`.

    Usage:
        assembler = ChunkAssembler(max_bytes=50 * MEGABYTE, ttl=3600)
        for index, total, piece in pieces:
            assembled = assembler.add_chunk(upload_id, index, total, piece)
        # assembled is the full file after the last missing piece arrives
    """

    def __init__(self, max_bytes: Optional[int] = None, ttl: Optional[float] = None):
        self.max_bytes = max_bytes
        self.ttl = ttl
        self._buffers: dict[str, ChunkBuffer] = {}

    def __len__(self) -> int:
        return len(self._buffers)

    def pending(self) -> list[str]:
        """Upload ids with chunks still outstanding."""
        self.evict_expired()
        return list(self._buffers)

    def get(self, upload_id: str) -> Optional[ChunkBuffer]:
        return self._buffers.get(upload_id)

    def discard(self, upload_id: str) -> None:
        """Release the buffer of an abandoned upload."""
        if self._buffers.pop(upload_id, None) is not None:
            logger.info(f"Discarded chunk buffer for {upload_id}")

    def evict_expired(self, now: Optional[datetime] = None) -> list[str]:
        """
        Drop buffers older than the configured TTL.

        Returns:
            The evicted upload ids.
        """
        if self.ttl is None:
            return []
        max_age = timedelta(seconds=self.ttl)
        expired = [
            upload_id
            for upload_id, buffer in self._buffers.items()
            if buffer.age(now) > max_age
        ]
        for upload_id in expired:
            buffer = self._buffers.pop(upload_id)
            logger.warning(
                f"Evicted stale chunk buffer for {upload_id} "
                f"({buffer.received}/{buffer.total_chunks} chunks, {buffer.size_bytes} bytes)"
            )
        return expired

    def add_chunk(
        self,
        upload_id: str,
        index: int,
        total: int,
        data: bytes,
        file_name: str = "",
        max_bytes: Optional[int] = None,
    ) -> Optional[bytes]:
        """
        Store one piece.

        Args:
            max_bytes: Size ceiling for this upload; defaults to the
                assembler's own `max_bytes`.

        Returns:
            None while pieces are missing; the reassembled bytes once the
            last missing piece arrives.

        Raises:
            ChunkLimitError: The upload is, or is bound to become, larger
                than the ceiling (the buffer is released).
            ChunkError: Bad id, index or total, or a total that disagrees
                with earlier pieces (the buffer is released in that case).
        """
        self.evict_expired()

        if not upload_id:
            raise ChunkError("Missing upload id")
        if total <= 0:
            raise ChunkError(f"Invalid chunk count: {total}")
        if not 0 <= index < total:
            raise ChunkError(f"Chunk index {index} out of range for {total} chunks")

        limit = max_bytes if max_bytes is not None else self.max_bytes
        # Every piece but the last has the same size
        if limit is not None and index < total - 1 and (total - 1) * len(data) > limit:
            self.discard(upload_id)
            raise ChunkLimitError(
                f"Upload {upload_id} of {total} chunks of {len(data)} bytes "
                f"exceeds {limit} bytes",
                limit,
            )

        buffer = self._buffers.get(upload_id)
        if buffer is None:
            buffer = ChunkBuffer(upload_id=upload_id, total_chunks=total, file_name=file_name)
            self._buffers[upload_id] = buffer
        elif buffer.total_chunks != total:
            self.discard(upload_id)
            raise ChunkError(
                f"Chunk count changed from {buffer.total_chunks} to {total} for {upload_id}"
            )

        buffer.chunks[index] = data
        if limit is not None and buffer.size_bytes > limit:
            self.discard(upload_id)
            raise ChunkLimitError(f"Upload {upload_id} exceeds {limit} bytes", limit)
        logger.debug(f"Stored chunk {index + 1}/{total} for {upload_id}")

        if not buffer.is_complete:
            return None

        logger.info(f"All {total} chunks received for {upload_id}, assembling file")
        try:
            return b"".join(buffer.chunks[i] for i in range(total))
        finally:
            self._buffers.pop(upload_id, None)
