"""
Unit tests for chunked upload reassembly.
"""

import itertools
import os
from datetime import datetime, timedelta

import pytest

from alhadi.upload.chunks import ChunkAssembler, ChunkError, ChunkLimitError, split_chunks


@pytest.mark.unit
class TestSplitChunks:
    """Tests for split_chunks()."""

    def test_pieces_cover_data(self):
        data = os.urandom(2500)

        pieces = list(split_chunks(data, 1000))

        assert [(index, total) for index, total, _ in pieces] == [(0, 3), (1, 3), (2, 3)]
        assert b"".join(piece for _, _, piece in pieces) == data

    def test_empty_data_is_one_chunk(self):
        assert list(split_chunks(b"", 1000)) == [(0, 1, b"")]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            list(split_chunks(b"abc", 0))


@pytest.mark.unit
class TestChunkAssembler:
    """Tests for ChunkAssembler."""

    def test_any_arrival_order_reassembles(self):
        data = os.urandom(4096)
        pieces = list(split_chunks(data, 1024))

        for order in itertools.permutations(pieces):
            assembler = ChunkAssembler()
            results = [
                assembler.add_chunk("upload-1", index, total, piece, "lecture.mp4")
                for index, total, piece in order
            ]

            assert results[:-1] == [None] * (len(pieces) - 1)
            assert results[-1] == data
            assert len(assembler) == 0

    def test_uploads_are_kept_apart(self):
        assembler = ChunkAssembler()

        assert assembler.add_chunk("a", 0, 2, b"a0") is None
        assert assembler.add_chunk("b", 0, 2, b"b0") is None
        assert sorted(assembler.pending()) == ["a", "b"]

        assert assembler.add_chunk("b", 1, 2, b"b1") == b"b0b1"
        assert assembler.pending() == ["a"]

    def test_progress_is_tracked(self):
        assembler = ChunkAssembler()
        assembler.add_chunk("a", 2, 3, b"c", "clip.mp4")

        buffer = assembler.get("a")

        assert buffer.received == 1
        assert buffer.missing == [0, 1]
        assert buffer.file_name == "clip.mp4"

    def test_duplicate_chunk_replaces_previous(self):
        assembler = ChunkAssembler()
        assembler.add_chunk("a", 0, 2, b"old")
        assembler.add_chunk("a", 0, 2, b"new")

        assert assembler.add_chunk("a", 1, 2, b"!") == b"new!"

    @pytest.mark.parametrize("index,total", [(-1, 2), (2, 2), (0, 0)])
    def test_out_of_range(self, index, total):
        assembler = ChunkAssembler()

        with pytest.raises(ChunkError):
            assembler.add_chunk("a", index, total, b"x")

        assert len(assembler) == 0

    def test_missing_upload_id(self):
        with pytest.raises(ChunkError):
            ChunkAssembler().add_chunk("", 0, 1, b"x")

    def test_inconsistent_total_releases_buffer(self):
        assembler = ChunkAssembler()
        assembler.add_chunk("a", 0, 3, b"x")

        with pytest.raises(ChunkError):
            assembler.add_chunk("a", 1, 4, b"y")

        assert assembler.get("a") is None

    def test_discard(self):
        assembler = ChunkAssembler()
        assembler.add_chunk("a", 0, 2, b"x")

        assembler.discard("a")
        assembler.discard("missing")

        assert len(assembler) == 0


@pytest.mark.unit
class TestChunkAssemblerLimits:
    """Tests for the size ceiling and stale buffer eviction."""

    def test_buffer_over_limit_is_released(self):
        assembler = ChunkAssembler(max_bytes=1000)
        assembler.add_chunk("a", 1, 2, b"x" * 600)

        with pytest.raises(ChunkLimitError) as exc_info:
            assembler.add_chunk("a", 0, 2, b"x" * 600)

        assert exc_info.value.limit == 1000
        assert assembler.get("a") is None

    def test_declared_size_rejected_on_first_chunk(self):
        assembler = ChunkAssembler()

        with pytest.raises(ChunkLimitError):
            assembler.add_chunk("a", 0, 100, b"x" * 50, max_bytes=1000)

        assert len(assembler) == 0

    def test_upload_at_limit_is_accepted(self):
        assembler = ChunkAssembler(max_bytes=1000)

        assert assembler.add_chunk("a", 0, 2, b"x" * 500) is None
        assert assembler.add_chunk("a", 1, 2, b"y" * 500) == b"x" * 500 + b"y" * 500

    def test_call_limit_overrides_default(self):
        assembler = ChunkAssembler(max_bytes=10)

        assert assembler.add_chunk("a", 0, 1, b"x" * 100, max_bytes=200) == b"x" * 100

    def test_stale_buffers_are_evicted(self):
        assembler = ChunkAssembler(ttl=60)
        assembler.add_chunk("old", 0, 2, b"x")
        assembler.add_chunk("fresh", 0, 2, b"y")
        assembler.get("old").created_at -= timedelta(minutes=5)

        assert assembler.pending() == ["fresh"]
        assert assembler.get("old") is None

    def test_eviction_runs_on_add(self):
        assembler = ChunkAssembler(ttl=60)
        assembler.add_chunk("old", 0, 2, b"x")
        assembler.get("old").created_at -= timedelta(hours=1)

        assembler.add_chunk("new", 0, 2, b"y")

        assert assembler.get("old") is None
        assert len(assembler) == 1

    def test_evict_expired_reports_ids(self):
        assembler = ChunkAssembler(ttl=60)
        assembler.add_chunk("a", 0, 2, b"x")

        later = datetime.utcnow() + timedelta(minutes=2)

        assert assembler.evict_expired(now=later) == ["a"]

    def test_no_ttl_keeps_buffers(self):
        assembler = ChunkAssembler()
        assembler.add_chunk("a", 0, 2, b"x")
        assembler.get("a").created_at -= timedelta(days=1)

        assert assembler.pending() == ["a"]
