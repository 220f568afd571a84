#!/usr/bin/env python3
"""
VidVoice Player Control

Capability-checked facade over a video playback engine. The engine may not
support every property on every platform, so capabilities are detected once
at construction and missing ones turn the matching operation into a logged
no-op.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from vidvoice.utils.text_utils import clamp


@dataclass
class PlayerSnapshot:
    """Transient mirror of the engine state, refreshed by polling."""
    playing: bool = False
    duration: float = 0.0
    position: float = 0.0
    muted: bool = False
    volume: float = 1.0
    playback_rate: float = 1.0
    fullscreen: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlayerCapabilities:
    """Which primitives a playback engine exposes."""
    play: bool = False
    pause: bool = False
    seek: bool = False
    duration: bool = False
    volume: bool = False
    muted: bool = False
    playback_rate: bool = False
    fullscreen: bool = False
    next_video: bool = False
    previous_video: bool = False

    @classmethod
    def detect(cls, engine: Any) -> "PlayerCapabilities":
        if engine is None:
            return cls()
        return cls(
            play=callable(getattr(engine, "play", None)),
            pause=callable(getattr(engine, "pause", None)),
            seek=hasattr(engine, "current_time"),
            duration=hasattr(engine, "duration"),
            volume=hasattr(engine, "volume"),
            muted=hasattr(engine, "muted"),
            playback_rate=hasattr(engine, "playback_rate"),
            fullscreen=hasattr(engine, "fullscreen"),
            next_video=callable(getattr(engine, "next_video", None)),
            previous_video=callable(getattr(engine, "previous_video", None)),
        )


class PlayerControl:
    """Transport, volume, rate and screen controls against an engine."""

    def __init__(self, engine: Any, logger: logging.Logger):
        self.engine = engine
        self.logger = logger
        self.capabilities = PlayerCapabilities.detect(engine)
        # Screen mode is tracked here when the engine has no fullscreen property
        self._fullscreen = False

        missing = [name for name, present in asdict(self.capabilities).items() if not present]
        if missing:
            self.logger.info(f"Player engine does not support: {', '.join(missing)}")

    def _unsupported(self, operation: str) -> bool:
        self.logger.warning(f"Player operation not supported on this engine: {operation}")
        return False

    @property
    def duration(self) -> float:
        if not self.capabilities.duration:
            return 0.0
        return float(self.engine.duration or 0.0)

    @property
    def position(self) -> float:
        if not self.capabilities.seek:
            return 0.0
        return float(self.engine.current_time or 0.0)

    @property
    def volume(self) -> float:
        if not self.capabilities.volume:
            return 1.0
        value = self.engine.volume
        return 1.0 if value is None else float(value)

    def play(self) -> bool:
        if not self.capabilities.play:
            return self._unsupported("play")
        self.engine.play()
        return True

    def pause(self) -> bool:
        if not self.capabilities.pause:
            return self._unsupported("pause")
        self.engine.pause()
        return True

    def seek(self, seconds: float) -> bool:
        """Move to an absolute position, clamped to [0, duration]."""
        if not self.capabilities.seek:
            return self._unsupported("seek")
        upper = self.duration if self.capabilities.duration else max(0.0, seconds)
        self.engine.current_time = clamp(seconds, 0.0, upper)
        return True

    def seek_by(self, delta: float) -> bool:
        if not self.capabilities.seek:
            return self._unsupported("seek")
        return self.seek(self.position + delta)

    def set_volume(self, volume: float) -> bool:
        if not self.capabilities.volume:
            return self._unsupported("volume")
        self.engine.volume = clamp(volume, 0.0, 1.0)
        return True

    def set_muted(self, muted: bool) -> bool:
        if not self.capabilities.muted:
            return self._unsupported("mute")
        self.engine.muted = bool(muted)
        return True

    def set_rate(self, rate: float) -> bool:
        if not self.capabilities.playback_rate:
            return self._unsupported("playback rate")
        self.engine.playback_rate = rate
        return True

    def set_fullscreen(self, fullscreen: bool) -> bool:
        self._fullscreen = bool(fullscreen)
        if self.capabilities.fullscreen:
            self.engine.fullscreen = self._fullscreen
        return True

    def next_video(self) -> bool:
        if not self.capabilities.next_video:
            self.logger.info("Next video requested, but no playlist is available")
            return False
        self.engine.next_video()
        return True

    def previous_video(self) -> bool:
        if not self.capabilities.previous_video:
            self.logger.info("Previous video requested, but no playlist is available")
            return False
        self.engine.previous_video()
        return True

    def snapshot(self) -> PlayerSnapshot:
        """Read the current engine state into a snapshot."""
        engine = self.engine
        return PlayerSnapshot(
            playing=bool(getattr(engine, "playing", False)),
            duration=self.duration,
            position=self.position,
            muted=bool(engine.muted) if self.capabilities.muted else False,
            volume=self.volume,
            playback_rate=float(engine.playback_rate or 1.0) if self.capabilities.playback_rate else 1.0,
            fullscreen=bool(engine.fullscreen) if self.capabilities.fullscreen else self._fullscreen,
        )


class VirtualPlayer:
    """In-process playback engine that keeps transport state in memory."""

    def __init__(self, duration: float = 0.0, volume: float = 1.0, playlist: Optional[list] = None):
        self.duration = duration
        self.current_time = 0.0
        self.volume = volume
        self.muted = False
        self.playback_rate = 1.0
        self.playing = False
        self.fullscreen = False
        self.playlist = list(playlist or [])
        self.playlist_index = 0

    def play(self):
        self.playing = True

    def pause(self):
        self.playing = False

    def next_video(self):
        if self.playlist and self.playlist_index < len(self.playlist) - 1:
            self.playlist_index += 1
            self.current_time = 0.0

    def previous_video(self):
        if self.playlist and self.playlist_index > 0:
            self.playlist_index -= 1
            self.current_time = 0.0

    @property
    def current_source(self) -> Optional[str]:
        if not self.playlist:
            return None
        return self.playlist[self.playlist_index]
