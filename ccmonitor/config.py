"""Configuration management for ccmonitor."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CCMONITOR_DIR = Path.home() / ".ccmonitor"
CONFIG_FILE = CCMONITOR_DIR / "config.yaml"
LOG_DIR = CCMONITOR_DIR / "logs"

CLAUDE_DIR = Path.home() / ".claude"

DEFAULT_PORT = 8737


class ServerConfig(BaseModel):
    """Hook listener settings."""

    port: int = DEFAULT_PORT
    bind: str = "127.0.0.1"


class DiscoveryConfig(BaseModel):
    """Process discovery settings."""

    process_name: str = "claude"
    require_terminal: bool = True
    scan_interval_seconds: float = 30.0


class CorrelationConfig(BaseModel):
    """Scoring constants for binding hook sessions to processes."""

    working_directory_confidence: float = 0.95
    start_time_window_seconds: float = 30.0
    start_time_max_confidence: float = 0.9
    start_time_floor: float = 0.5
    label_weight: float = 0.7
    label_threshold: float = 0.3
    fallback_confidence: float = 0.1


class TranscriptConfig(BaseModel):
    """Transcript lookup settings."""

    claude_dir: str = str(CLAUDE_DIR)
    match_on_scan: bool = True
    max_task_length: int = 60

    @property
    def projects_dir(self) -> Path:
        return Path(self.claude_dir).expanduser() / "projects"

    @property
    def settings_file(self) -> Path:
        return Path(self.claude_dir).expanduser() / "settings.json"


class ModelRate(BaseModel):
    """Price in USD per million tokens."""

    input: float
    output: float


class NotificationConfig(BaseModel):
    """Notification settings."""

    macos: bool = True
    sound: str = "Glass"


class MonitorConfig(BaseModel):
    """Root configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    transcripts: TranscriptConfig = Field(default_factory=TranscriptConfig)
    pricing: dict[str, ModelRate] = Field(default_factory=dict)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)


def ensure_dirs() -> None:
    """Create ccmonitor directories if they don't exist."""
    CCMONITOR_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def load_config(path: Path | None = None) -> MonitorConfig:
    """Load configuration from ~/.ccmonitor/config.yaml, falling back to defaults."""
    raw = load_yaml(path or CONFIG_FILE)
    return MonitorConfig(**raw)


def save_default_config() -> Path:
    """Write default config to ~/.ccmonitor/config.yaml."""
    ensure_dirs()
    config = MonitorConfig()
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
    return CONFIG_FILE


def load_yaml(path: Path) -> dict[str, Any]:
    """Safely load a YAML file, returning empty dict when it is missing or empty."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}
