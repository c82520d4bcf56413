"""
Al-Hadi Media Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import alhadi.config as config_module
from alhadi.config import AlhadiConfig, StreamConfig, UploadConfig
from alhadi.main import create_app
from alhadi.storage.base import StorageClient, StoredObject
from alhadi.streaming.engine import DecodeEngine, DisplaySurface, MediaElement
from alhadi.streaming.events import EngineEvent
from alhadi.upload.chunks import ChunkAssembler

PUBLIC_BASE = "https://project.supabase.co/storage/v1/object/public/videos"


# ============ Fake Collaborators ============


class FakeStorage(StorageClient):
    """In-memory storage that counts every call."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.objects: dict[str, bytes] = {}
        self.uploads: list[dict[str, Any]] = []
        self.removed: list[str] = []
        self.calls = 0

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> StoredObject:
        self.calls += 1
        self.uploads.append({
            "path": path,
            "size": len(data),
            "content_type": content_type,
            "cache_control": cache_control,
            "upsert": upsert,
        })
        if self.fail_with is not None:
            raise self.fail_with
        self.objects[path] = data
        return StoredObject(path=path, bucket="videos")

    def get_public_url(self, path: str) -> str:
        return f"{PUBLIC_BASE}/{path}"

    async def remove(self, paths: list[str]) -> None:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)


class FakeEngine(DecodeEngine):
    """Decode engine driven by the test through `emit()`."""

    def __init__(self, recover_error: Optional[Exception] = None):
        self.recover_error = recover_error
        self.callbacks: list[Callable[[EngineEvent], None]] = []
        self.loaded: list[str] = []
        self.media: Optional[MediaElement] = None
        self.recover_calls = 0
        self.destroyed = False

    def load_source(self, url: str) -> None:
        self.loaded.append(url)

    def attach_media(self, element: Optional[MediaElement]) -> None:
        self.media = element

    def subscribe(self, callback: Callable[[EngineEvent], None]) -> None:
        self.callbacks.append(callback)

    def recover_media_error(self) -> None:
        self.recover_calls += 1
        if self.recover_error is not None:
            raise self.recover_error

    def destroy(self) -> None:
        self.destroyed = True

    def emit(self, event: EngineEvent) -> None:
        for callback in list(self.callbacks):
            callback(event)


class EngineRecorder:
    """Engine factory that keeps every engine it created."""

    def __init__(self, **engine_kwargs: Any):
        self.engine_kwargs = engine_kwargs
        self.engines: list[FakeEngine] = []

    def __call__(self) -> FakeEngine:
        engine = FakeEngine(**self.engine_kwargs)
        self.engines.append(engine)
        return engine

    @property
    def current(self) -> FakeEngine:
        return self.engines[-1]


class FakeMedia(MediaElement):
    def __init__(self, play_error: Optional[Exception] = None):
        self.muted = False
        self.play_error = play_error
        self.play_calls = 0
        self.pause_calls = 0
        self.fullscreen_requests = 0

    async def play(self) -> None:
        self.play_calls += 1
        if self.play_error is not None:
            raise self.play_error

    def pause(self) -> None:
        self.pause_calls += 1

    def webkit_request_fullscreen(self) -> None:
        self.fullscreen_requests += 1


class FakeSurface(DisplaySurface):
    def __init__(self):
        self.fullscreen_element = None
        self.listeners: dict[str, list[Callable[[], None]]] = {}
        self.exit_calls = 0

    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def remove_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        self.listeners.get(event, []).remove(callback)

    def exit_fullscreen(self) -> None:
        self.exit_calls += 1

    def dispatch(self, event: str) -> None:
        for callback in list(self.listeners.get(event, [])):
            callback()


# ============ Settings Fixtures ============


@pytest.fixture
def stream_settings() -> StreamConfig:
    """Stream settings with short timers."""
    return StreamConfig(
        candidate_urls=["https://a.example/live.m3u8", "https://b.example/live.m3u8"],
        load_timeout=5.0,
        progress_interval=0.01,
        reset_grace=0.01,
    )


@pytest.fixture
def upload_settings() -> UploadConfig:
    """Upload settings with short timers."""
    return UploadConfig(progress_interval=0.01, reset_grace=0.01)


# ============ Collaborator Fixtures ============


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def engines() -> EngineRecorder:
    return EngineRecorder()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


# ============ FastAPI Test Client Fixtures ============


@pytest.fixture(scope="function")
def app(storage: FakeStorage, upload_settings: UploadConfig) -> FastAPI:
    """Create a test FastAPI application with fake collaborators."""
    app = create_app()
    app.state.storage = storage
    app.state.chunk_assembler = ChunkAssembler()
    app.state.upload_settings = upload_settings
    app.state.duration_probe = None
    return app


@pytest.fixture(scope="function")
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Synchronous test client; the lifespan is not run."""
    yield TestClient(app)


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
server:
  host: "127.0.0.1"
  port: 9000

supabase:
  url: "https://project.supabase.co"
  anon_key: "anon"

stream:
  load_timeout: 10
  candidate_urls:
    - "https://a.example/live.m3u8"

upload:
  max_image_bytes: 1048576

logging:
  level: "DEBUG"
"""
    config_file.write_text(config_content)
    return config_file


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables and cached configuration for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("ALHADI_"):
            del os.environ[key]

    config_module._config = AlhadiConfig()

    yield

    config_module._config = None
    os.environ.clear()
    os.environ.update(original_env)


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "network: Network access required")
