"""
Integration tests for the upload relay, program and live status APIs.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from alhadi import messages
from alhadi.config import MEGABYTE, UploadConfig
from alhadi.database.rest_client import TableClient
from alhadi.errors import StorageServiceError, TransportError
from alhadi.services.program_media import ProgramMediaService
from alhadi.streaming.events import EngineErrorKind, FatalError, ManifestParsed
from tests.conftest import PUBLIC_BASE, FakeEngine, FakeStorage


@pytest.mark.integration
class TestUploadAPI:
    """Tests for /api/upload endpoints."""

    def test_upload_video(self, client: TestClient, storage: FakeStorage):
        response = client.post(
            "/api/upload-video",
            files={"file": ("lecture.mp4", b"\x00" * 4096, "video/mp4")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["file_path"].startswith("videos/")
        assert data["url"].endswith(data["file_path"])
        assert data["file_name"] == data["file_path"].split("/", 1)[1]
        assert data["duration"] == "00:00"
        assert storage.uploads[0]["content_type"] == "video/mp4"

    def test_upload_image(self, client: TestClient):
        response = client.post(
            "/api/upload-image",
            files={"file": ("cover.jpg", b"\xff\xd8\xff", "image/jpeg")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["file_path"].startswith("thumbnails/")
        assert data["duration"] is None

    def test_generic_upload_picks_kind(self, client: TestClient):
        response = client.post(
            "/api/upload",
            files={"file": ("cover.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["file_path"].startswith("thumbnails/")

    def test_generic_upload_rejects_unknown_type(self, client: TestClient, storage: FakeStorage):
        response = client.post(
            "/api/upload",
            files={"file": ("notes.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == messages.UNSUPPORTED_FILE_TYPE
        assert storage.calls == 0

    def test_oversize_image_rejected(self, client: TestClient, storage: FakeStorage):
        response = client.post(
            "/api/upload-image",
            files={"file": ("big.jpg", b"\x00" * (6 * MEGABYTE), "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == messages.IMAGE_TOO_LARGE.format(max_mb=5)
        assert storage.calls == 0

    def test_wrong_type_for_video(self, client: TestClient, storage: FakeStorage):
        response = client.post(
            "/api/upload-video",
            files={"file": ("cover.jpg", b"\xff\xd8", "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == messages.INVALID_VIDEO_TYPE
        assert storage.calls == 0

    def test_missing_file(self, client: TestClient):
        response = client.post("/api/upload-video")

        assert response.status_code == 400
        assert response.json()["detail"] == messages.NO_FILE_SELECTED

    def test_storage_failure_is_bad_gateway(self, client: TestClient, storage: FakeStorage):
        storage.fail_with = StorageServiceError("new row violates row-level security policy", 403)

        response = client.post(
            "/api/upload-video",
            files={"file": ("lecture.mp4", b"\x00" * 10, "video/mp4")},
        )

        assert response.status_code == 502
        assert "row-level security" in response.json()["detail"]
        assert storage.calls == 1

    def test_no_storage_configured(self, client: TestClient):
        client.app.state.storage = None

        response = client.post(
            "/api/upload-video",
            files={"file": ("lecture.mp4", b"\x00", "video/mp4")},
        )

        assert response.status_code == 503


@pytest.mark.integration
class TestChunkUploadAPI:
    """Tests for /api/upload-chunk."""

    def post_chunk(
        self, client, upload_id, index, total, data,
        file_name="lecture.mp4", content_type="video/mp4",
    ):
        return client.post(
            "/api/upload-chunk",
            data={
                "upload_id": upload_id,
                "chunk_index": str(index),
                "total_chunks": str(total),
                "file_name": file_name,
                "content_type": content_type,
            },
            files={"chunk": ("blob", data, "application/octet-stream")},
        )

    def test_out_of_order_chunks(self, client: TestClient, storage: FakeStorage):
        first = self.post_chunk(client, "u1", 2, 3, b"cc")
        second = self.post_chunk(client, "u1", 0, 3, b"aa")
        last = self.post_chunk(client, "u1", 1, 3, b"bb")

        assert first.json() == {"success": True, "message": "Chunk 3/3 received", "received": 1}
        assert second.json()["received"] == 2
        data = last.json()
        assert data["success"] is True
        assert data["file_path"].startswith("videos/chunked_")
        assert storage.objects[data["file_path"]] == b"aabbcc"
        assert len(client.app.state.chunk_assembler) == 0

    def test_invalid_index(self, client: TestClient):
        response = self.post_chunk(client, "u2", 5, 3, b"x")

        assert response.status_code == 400

    def test_unsupported_type_rejected(self, client: TestClient, storage: FakeStorage):
        client.app.state.upload_settings = UploadConfig(max_video_bytes=1000)

        first = self.post_chunk(
            client, "u3", 0, 2, b"\x00" * 800,
            file_name="evil.sh", content_type="application/x-sh",
        )
        second = self.post_chunk(
            client, "u3", 1, 2, b"\x00" * 800,
            file_name="evil.sh", content_type="application/x-sh",
        )

        assert first.status_code == 400
        assert first.json()["detail"] == messages.UNSUPPORTED_FILE_TYPE
        assert second.status_code == 400
        assert storage.calls == 0
        assert len(client.app.state.chunk_assembler) == 0

    def test_assembled_file_over_limit(self, client: TestClient, storage: FakeStorage):
        client.app.state.upload_settings = UploadConfig(max_video_bytes=1000)

        first = self.post_chunk(client, "u4", 0, 2, b"\x00" * 800)
        second = self.post_chunk(client, "u4", 1, 2, b"\x00" * 800)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["detail"] == messages.VIDEO_TOO_LARGE.format(max_mb=0)
        assert storage.calls == 0
        assert len(client.app.state.chunk_assembler) == 0

    def test_declared_size_over_limit(self, client: TestClient, storage: FakeStorage):
        client.app.state.upload_settings = UploadConfig(max_video_bytes=1000)

        response = self.post_chunk(client, "u5", 0, 10, b"\x00" * 800)

        assert response.status_code == 400
        assert client.app.state.chunk_assembler.get("u5") is None
        assert storage.calls == 0

    def test_image_chunks_keep_their_type(self, client: TestClient, storage: FakeStorage):
        response = self.post_chunk(
            client, "u6", 0, 1, b"\x89PNG", file_name="cover.png", content_type="image/png",
        )

        assert response.status_code == 200
        assert response.json()["file_path"].endswith(".png")
        assert storage.uploads[0]["content_type"] == "image/png"

    def test_upload_id_required(self, client: TestClient):
        response = client.post(
            "/api/upload-chunk",
            data={"chunk_index": "0", "total_chunks": "1"},
            files={"chunk": ("blob", b"x", "application/octet-stream")},
        )

        assert response.status_code == 422


@pytest.mark.integration
class TestFilesAPI:
    """Tests for DELETE /api/files."""

    def test_delete(self, client: TestClient, storage: FakeStorage):
        storage.objects["videos/a.mp4"] = b"x"

        response = client.delete("/api/files", params={"path": "videos/a.mp4"})

        assert response.status_code == 200
        assert storage.removed == ["videos/a.mp4"]

    def test_delete_without_path(self, client: TestClient, storage: FakeStorage):
        response = client.delete("/api/files")

        assert response.status_code == 400
        assert storage.calls == 0

    def test_delete_transport_failure(self, client: TestClient, storage: FakeStorage):
        storage.fail_with = TransportError("Storage unreachable")

        response = client.delete("/api/files", params={"path": "videos/a.mp4"})

        assert response.status_code == 502


@pytest.mark.integration
class TestHealthAndLiveAPI:
    """Tests for /health and /api/live/status."""

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live_status(self, client: TestClient, stream_settings):
        class ScriptedEngine(FakeEngine):
            def load_source(self, url):
                super().load_source(url)
                if url == stream_settings.candidate_urls[0]:
                    self.emit(FatalError(EngineErrorKind.NETWORK, "503"))
                else:
                    self.emit(ManifestParsed(url=url))

        client.app.state.stream_settings = stream_settings
        client.app.state.engine_factory = ScriptedEngine

        response = client.get("/api/live/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "available"
        assert data["active_index"] == 1
        assert data["active_url"] == stream_settings.candidate_urls[1]


@pytest.fixture
def tables() -> MagicMock:
    tables = MagicMock(spec=TableClient)
    tables.select = AsyncMock(return_value=[{
        "id": 7,
        "video_url": f"{PUBLIC_BASE}/videos/1_ab.mp4",
        "thumbnail_url": f"{PUBLIC_BASE}/thumbnails/1_cd.jpg",
    }])
    tables.update = AsyncMock(return_value=[{"id": 7}])
    tables.delete = AsyncMock(return_value=[{"id": 7, "title": "Lecture"}])
    return tables


@pytest.fixture
def programs_client(client: TestClient, storage: FakeStorage, tables: MagicMock) -> TestClient:
    client.app.state.program_media = ProgramMediaService(storage, tables, bucket="videos")
    return client


@pytest.mark.integration
class TestProgramsAPI:
    """Tests for /api/programs endpoints."""

    def test_delete_program_removes_files(
        self, programs_client: TestClient, storage: FakeStorage, tables: MagicMock
    ):
        response = programs_client.delete("/api/programs/7")

        assert response.status_code == 200
        assert response.json() == {"success": True, "program": {"id": 7, "title": "Lecture"}}
        assert storage.removed == ["videos/1_ab.mp4", "thumbnails/1_cd.jpg"]
        tables.delete.assert_awaited_once_with("programs", {"id": 7})

    def test_delete_missing_program(
        self, programs_client: TestClient, storage: FakeStorage, tables: MagicMock
    ):
        tables.select.return_value = []
        tables.delete.return_value = []

        response = programs_client.delete("/api/programs/99")

        assert response.status_code == 404
        assert storage.calls == 0

    def test_delete_when_table_unreachable(self, programs_client: TestClient, tables: MagicMock):
        tables.select.side_effect = TransportError("Database unreachable")

        response = programs_client.delete("/api/programs/7")

        assert response.status_code == 502

    def test_attach_video(self, programs_client: TestClient, storage: FakeStorage, tables: MagicMock):
        response = programs_client.post(
            "/api/programs/7/media",
            files={"file": ("lecture.mp4", b"\x00" * 64, "video/mp4")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["program"] == {"id": 7}
        assert data["file_path"].startswith("videos/")
        values = tables.update.await_args.args[1]
        assert values == {"video_url": data["url"], "duration": "00:00"}

    def test_attach_thumbnail(self, programs_client: TestClient, tables: MagicMock):
        response = programs_client.post(
            "/api/programs/7/media",
            files={"file": ("cover.jpg", b"\xff\xd8", "image/jpeg")},
        )

        assert response.status_code == 200
        assert tables.update.await_args.args[1] == {"thumbnail_url": response.json()["url"]}

    def test_attach_to_missing_program(self, programs_client: TestClient, tables: MagicMock):
        tables.update.return_value = []

        response = programs_client.post(
            "/api/programs/99/media",
            files={"file": ("cover.jpg", b"\xff\xd8", "image/jpeg")},
        )

        assert response.status_code == 404

    def test_attach_rejects_invalid_file(
        self, programs_client: TestClient, storage: FakeStorage, tables: MagicMock
    ):
        response = programs_client.post(
            "/api/programs/7/media",
            files={"file": ("notes.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 400
        assert storage.calls == 0
        tables.update.assert_not_awaited()

    def test_service_not_configured(self, client: TestClient):
        response = client.delete("/api/programs/7")

        assert response.status_code == 503
