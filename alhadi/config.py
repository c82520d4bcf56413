"""
Configuration management for Al-Hadi Media.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# Global configuration instance
_config: Optional["AlhadiConfig"] = None

MEGABYTE = 1024 * 1024

DEFAULT_STREAM_URLS = [
    "https://672a3a5c8e335.streamlock.net:443/alhadi/smil:alhadimedia.smil/playlist.m3u8",
    "https://g.decdn.net/haditv.co.uk/haditv6.m3u8",
]


class ServerConfig(BaseModel):
    """Server configuration."""
    host: str = "0.0.0.0"
    port: int = 8420
    debug: bool = False
    log_level: str = "INFO"


class SupabaseConfig(BaseModel):
    """Hosted database and storage service."""
    url: str = ""
    anon_key: str = ""
    service_key: str = ""
    storage_bucket: str = "videos"
    timeout: float = 60.0

    @property
    def api_key(self) -> str:
        """Service key when configured, anon key otherwise."""
        return self.service_key or self.anon_key


class HLSEngineConfig(BaseModel):
    """Decode engine tuning, forwarded to the engine on creation."""
    manifest_loading_timeout: float = 30.0
    level_loading_timeout: float = 30.0
    frag_loading_timeout: float = 30.0
    start_level: int = 1


class StreamConfig(BaseModel):
    """Live stream playback configuration."""
    candidate_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_STREAM_URLS))
    load_timeout: float = 45.0
    progress_interval: float = 0.5
    progress_step_max: float = 15.0
    progress_cap: float = 90.0
    level_loaded_progress: float = 75.0
    frag_loaded_progress: float = 85.0
    reset_grace: float = 1.0
    engine: HLSEngineConfig = Field(default_factory=HLSEngineConfig)


class UploadConfig(BaseModel):
    """File upload configuration."""
    max_video_bytes: int = 50 * MEGABYTE
    max_image_bytes: int = 5 * MEGABYTE
    cache_control: str = "3600"
    chunk_size: int = 5 * MEGABYTE
    chunk_ttl: float = 3600.0
    progress_interval: float = 0.5
    progress_step_max: float = 10.0
    progress_cap: float = 95.0
    reset_grace: float = 1.0
    video_folder: str = "videos"
    image_folder: str = "thumbnails"
    chunk_folder: str = "videos"
    placeholder_duration: str = "00:00"
    duration_probe_timeout: float = 30.0
    # direct, relayed or chunked
    strategy: str = "direct"
    relay_url: str = "http://localhost:8420"
    relay_timeout: float = 120.0


class FFmpegConfig(BaseModel):
    """FFmpeg tooling used for media probing."""
    ffprobe_path: str = "ffprobe"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/alhadi.log"
    max_bytes: int = 10 * MEGABYTE
    backup_count: int = 5
    to_console: bool = True
    to_file: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AlhadiConfig(BaseModel):
    """Main Al-Hadi Media configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AlhadiConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        # Look for config.yaml in current directory or project root
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = AlhadiConfig(**config_data)
    return _config


def get_config() -> AlhadiConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> AlhadiConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    # Map of environment variables to config paths
    env_map = {
        "ALHADI_HOST": ("server", "host"),
        "ALHADI_PORT": ("server", "port"),
        "ALHADI_DEBUG": ("server", "debug"),
        "ALHADI_LOG_LEVEL": ("logging", "level"),
        "ALHADI_SUPABASE_URL": ("supabase", "url"),
        "ALHADI_SUPABASE_ANON_KEY": ("supabase", "anon_key"),
        "ALHADI_SUPABASE_SERVICE_KEY": ("supabase", "service_key"),
        "ALHADI_STORAGE_BUCKET": ("supabase", "storage_bucket"),
        "ALHADI_FFPROBE_PATH": ("ffmpeg", "ffprobe_path"),
        "ALHADI_UPLOAD_STRATEGY": ("upload", "strategy"),
        "ALHADI_RELAY_URL": ("upload", "relay_url"),
    }

    # Keys and URLs must stay strings even when they look numeric
    string_only = {
        "ALHADI_HOST",
        "ALHADI_LOG_LEVEL",
        "ALHADI_SUPABASE_URL",
        "ALHADI_SUPABASE_ANON_KEY",
        "ALHADI_SUPABASE_SERVICE_KEY",
        "ALHADI_STORAGE_BUCKET",
        "ALHADI_FFPROBE_PATH",
        "ALHADI_UPLOAD_STRATEGY",
        "ALHADI_RELAY_URL",
    }

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            parsed = value if env_var in string_only else _parse_env_value(value)
            _set_nested(overrides, path, parsed)

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    # Integer
    try:
        return int(value)
    except ValueError:
        pass

    # Float
    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
