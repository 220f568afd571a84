#!/usr/bin/env python3
"""
VidVoice Configuration Management

Centralized configuration with dataclasses for type safety,
environment variable loading, and platform detection.
"""

import os
import logging
import platform
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, List, Dict, Any

import yaml
from dotenv import load_dotenv


@dataclass
class VoiceConfig:
    """Voice control and listening settings."""
    language: str = "en"
    default_language: str = "en"
    always_listening: bool = False
    interim_confidence_threshold: float = 0.8
    final_confidence_threshold: float = 0.3
    keep_alive_interval: float = 5.0
    restart_delay_on_end: float = 0.05
    restart_delay_on_error: float = 0.2
    status_clear_delay: float = 3.0
    record_seconds: int = 5
    listen_timeout_seconds: int = 5
    spoken_feedback: bool = False


@dataclass
class TranscriptionConfig:
    """Remote speech-to-text endpoint settings."""
    endpoint: str = "https://toolkit.rork.com/stt/transcribe/"
    timeout_seconds: float = 15.0
    default_confidence: float = 0.85


@dataclass
class PlayerConfig:
    """Player control settings."""
    volume_step: float = 0.2
    default_volume: float = 1.0
    default_duration: float = 0.0


@dataclass
class StorageConfig:
    """Key-value persistence settings."""
    store_file: str = "vidvoice_store.json"
    scrub_on_startup: bool = True


@dataclass
class CatalogConfig:
    """Voice command catalog locations (packaged defaults when unset)."""
    intents_file: Optional[str] = None
    commands_file: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)

    # Runtime settings
    log_level: str = "INFO"
    log_file: str = "vidvoice.log"

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from YAML file."""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = yaml.safe_load(f) or {}

            config = cls()

            if "voice" in config_data:
                config.voice = VoiceConfig(**config_data["voice"])
            if "transcription" in config_data:
                config.transcription = TranscriptionConfig(**config_data["transcription"])
            if "player" in config_data:
                config.player = PlayerConfig(**config_data["player"])
            if "storage" in config_data:
                config.storage = StorageConfig(**config_data["storage"])
            if "catalog" in config_data:
                config.catalog = CatalogConfig(**config_data["catalog"])
            if "log_level" in config_data:
                config.log_level = config_data["log_level"]
            if "log_file" in config_data:
                config.log_file = config_data["log_file"]

            return config

        except Exception as e:
            raise ValueError(f"Error loading configuration: {e}")

    def save_to_file(self, config_path: str):
        """Save configuration to YAML file."""
        config_data = {
            "voice": asdict(self.voice),
            "transcription": asdict(self.transcription),
            "player": asdict(self.player),
            "storage": asdict(self.storage),
            "catalog": asdict(self.catalog),
            "log_level": self.log_level,
            "log_file": self.log_file
        }

        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_file, 'w') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)
        except Exception as e:
            raise ValueError(f"Error saving configuration: {e}")

    def load_environment_variables(self):
        """Load configuration from environment variables."""
        load_dotenv()

        # Voice settings
        self.voice.language = os.getenv("VIDVOICE_LANGUAGE", self.voice.language)
        if os.getenv("VIDVOICE_ALWAYS_LISTENING"):
            self.voice.always_listening = os.getenv("VIDVOICE_ALWAYS_LISTENING", "").lower() in ("true", "1", "yes")
        self.voice.spoken_feedback = os.getenv(
            "VIDVOICE_SPOKEN_FEEDBACK", str(self.voice.spoken_feedback)
        ).lower() in ("true", "1", "yes")

        # Transcription endpoint
        self.transcription.endpoint = os.getenv("TRANSCRIPTION_ENDPOINT", self.transcription.endpoint)
        self.transcription.timeout_seconds = float(
            os.getenv("TRANSCRIPTION_TIMEOUT", str(self.transcription.timeout_seconds))
        )

        # Storage
        self.storage.store_file = os.getenv("VIDVOICE_STORE_FILE", self.storage.store_file)

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.log_file = os.getenv("LOG_FILE", self.log_file)

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.transcription.endpoint.startswith(("http://", "https://")):
            issues.append("Transcription endpoint must be an http(s) URL")

        for name in ("interim_confidence_threshold", "final_confidence_threshold"):
            value = getattr(self.voice, name)
            if not 0.0 <= value <= 1.0:
                issues.append(f"{name} must be between 0.0 and 1.0")

        if self.voice.keep_alive_interval <= 0:
            issues.append("Keep-alive interval must be positive")

        if self.voice.restart_delay_on_end < 0 or self.voice.restart_delay_on_error < 0:
            issues.append("Restart delays cannot be negative")

        if self.voice.record_seconds < 1:
            issues.append("Recording window must be at least 1 second")

        if not 0.0 < self.player.volume_step <= 1.0:
            issues.append("Volume step must be in (0.0, 1.0]")

        if not 0.0 <= self.player.default_volume <= 1.0:
            issues.append("Default volume must be between 0.0 and 1.0")

        return issues


def setup_logging(config: Config) -> logging.Logger:
    """Setup logging configuration for VidVoice."""
    logger = logging.getLogger("vidvoice")
    logger.setLevel(getattr(logging, config.log_level.upper()))

    # Clear existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    try:
        log_file = Path(config.log_file)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, config.log_level.upper()))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except Exception as e:
        logger.warning(f"Could not create log file: {e}")

    return logger


def check_dependencies() -> Dict[str, bool]:
    """Check for optional audio dependencies."""
    deps = {}

    try:
        import speech_recognition
        deps["speech_recognition"] = True
    except ImportError:
        deps["speech_recognition"] = False

    try:
        import pyaudio
        deps["pyaudio"] = True
    except ImportError:
        deps["pyaudio"] = False

    try:
        import pyttsx3
        deps["pyttsx3"] = True
    except ImportError:
        deps["pyttsx3"] = False

    return deps


def get_platform_info() -> Dict[str, Any]:
    """Get platform-specific information."""
    return {
        "system": platform.system(),
        "release": platform.release(),
        "machine": platform.machine(),
        "python_version": platform.python_version(),
    }
