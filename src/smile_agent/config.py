"""
SmileCaptureAgent Configuration
===============================

This module handles configuration loading for the smile capture agent.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SMILE_SOURCE_KIND        -> source.kind
    SMILE_STREAM_URL         -> source.url
    SMILE_CAMERA_INDEX       -> source.camera_index
    SMILE_DETECTOR_BACKEND   -> detector.backend
    SMILE_MODEL_PATH         -> detector.model_path
    SMILE_PIXEL_COORDINATES  -> detector.pixel_coordinates
    SMILE_JPEG_QUALITY       -> conversion.jpeg_quality
    SMILE_COOLDOWN_MS        -> capture.cooldown_ms
    SMILE_AGENT_PORT         -> server.port
    SMILE_LOG_LEVEL          -> logging.level
    PORT                     -> server.port (Cloud Run)

Example:
    from smile_agent.config import settings

    print(settings.agent.name)
    print(settings.detector.backend)
    print(settings.classifier.min_width_ratio)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Agent identification configuration."""

    name: str = Field(default="smile-capture-agent", description="Agent name")
    version: str = Field(default="v0.1.0", description="Protocol version")


class SourceConfig(BaseModel):
    """Frame source configuration."""

    kind: str = Field(
        default="websocket",
        description="Frame source: 'websocket', 'camera' or 'none'",
    )
    url: str = Field(
        default="ws://localhost:8000/ws/frames",
        description="WebSocket URL of the raw frame producer",
    )
    camera_index: int = Field(
        default=0,
        ge=0,
        description="OpenCV camera index for the camera source",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class ConversionConfig(BaseModel):
    """Pixel conversion configuration."""

    jpeg_quality: int = Field(
        default=90,
        ge=1,
        le=100,
        description="JPEG quality used for the still-image round trip",
    )


class DetectorConfig(BaseModel):
    """Landmark detector configuration."""

    backend: str = Field(
        default="mock",
        description="Landmark detector backend: 'mock' or 'mediapipe'",
    )
    model_path: str = Field(
        default="./models/face_landmarker.task",
        description="Path to the MediaPipe face landmarker model asset",
    )
    num_faces: int = Field(default=1, ge=1, description="Maximum faces per frame")
    min_face_detection_confidence: float = Field(default=0.5, ge=0, le=1.0)
    min_face_presence_confidence: float = Field(default=0.5, ge=0, le=1.0)
    min_tracking_confidence: float = Field(default=0.5, ge=0, le=1.0)
    pixel_coordinates: bool = Field(
        default=False,
        description="Scale landmarks to pixels (changes ratios on non-square images)",
    )


class ClassifierConfig(BaseModel):
    """Smile decision thresholds."""

    min_landmarks: int = Field(
        default=468,
        ge=455,
        description="Minimum landmark count for a usable face mesh",
    )
    min_width_ratio: float = Field(
        default=0.045,
        ge=0,
        description="Mouth width / face width must exceed this",
    )
    min_aspect_ratio: float = Field(
        default=3.0,
        ge=0,
        description="Mouth width / mouth height must exceed this",
    )


class CaptureConfig(BaseModel):
    """Capture trigger configuration."""

    cooldown_ms: int = Field(
        default=2000,
        ge=0,
        description="Minimum interval between accepted capture triggers",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for SmileCaptureAgent.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Source settings
    if env_kind := os.environ.get("SMILE_SOURCE_KIND"):
        config_data.setdefault("source", {})["kind"] = env_kind
    if env_url := os.environ.get("SMILE_STREAM_URL"):
        config_data.setdefault("source", {})["url"] = env_url
    if env_cam := os.environ.get("SMILE_CAMERA_INDEX"):
        config_data.setdefault("source", {})["camera_index"] = int(env_cam)
    if env_backoff := os.environ.get("SMILE_RECONNECT_BACKOFF_MS"):
        config_data.setdefault("source", {})["reconnect_backoff_ms"] = int(env_backoff)

    # Detector settings
    if env_backend := os.environ.get("SMILE_DETECTOR_BACKEND"):
        config_data.setdefault("detector", {})["backend"] = env_backend
    if env_model := os.environ.get("SMILE_MODEL_PATH"):
        config_data.setdefault("detector", {})["model_path"] = env_model
    if env_pixels := os.environ.get("SMILE_PIXEL_COORDINATES"):
        config_data.setdefault("detector", {})["pixel_coordinates"] = env_pixels.lower() in ("1", "true", "yes")

    # Pipeline tuning
    if env_quality := os.environ.get("SMILE_JPEG_QUALITY"):
        config_data.setdefault("conversion", {})["jpeg_quality"] = int(env_quality)
    if env_cooldown := os.environ.get("SMILE_COOLDOWN_MS"):
        config_data.setdefault("capture", {})["cooldown_ms"] = int(env_cooldown)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SMILE_AGENT_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SMILE_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
