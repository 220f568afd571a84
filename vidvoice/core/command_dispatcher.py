#!/usr/bin/env python3
"""
VidVoice Command Dispatcher

Routes matched intents and action keys to player controls, counts usage,
broadcasts a voice_command event and keeps a bounded command history.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from vidvoice.core.matcher import MatchedCommand
from vidvoice.core.player import PlayerControl
from vidvoice.data import responses
from vidvoice.services.settings import VoiceSettings
from vidvoice.utils.event_bus import EventBus, VOICE_COMMAND

# Intent table name -> action key
INTENT_ACTIONS = {
    "PlayVideoIntent": "play",
    "PauseVideoIntent": "pause",
    "StopVideoIntent": "stop",
    "NextVideoIntent": "next",
    "PreviousVideoIntent": "previous",
    "ReplayVideoIntent": "restart",
    "Forward10Intent": "forward_10",
    "Forward20Intent": "forward_20",
    "Forward30Intent": "forward_30",
    "Rewind10Intent": "rewind_10",
    "Rewind20Intent": "rewind_20",
    "Rewind30Intent": "rewind_30",
    "VolumeMaxIntent": "volume_max",
    "MuteIntent": "mute",
    "UnmuteIntent": "unmute",
    "VolumeUpIntent": "volume_up",
    "VolumeDownIntent": "volume_down",
    "EnterFullscreenIntent": "fullscreen_enter",
    "ExitFullscreenIntent": "fullscreen_exit",
    "SpeedHalfIntent": "speed_0.5",
    "SpeedNormalIntent": "speed_normal",
    "Speed125Intent": "speed_1.25",
    "Speed150Intent": "speed_1.5",
    "Speed200Intent": "speed_2.0",
}

ACTION_INTENTS = {action: intent for intent, action in INTENT_ACTIONS.items()}

# Action keys written by older custom-command editors
ACTION_ALIASES = {
    "fullscreen": "fullscreen_enter",
    "exit_fullscreen": "fullscreen_exit",
    "speed_0_5": "speed_0.5",
    "speed_1_25": "speed_1.25",
    "speed_1_5": "speed_1.5",
    "speed_2_0": "speed_2.0",
}

VOLUME_STEP = 0.2


@dataclass
class ExecutionResult:
    """Result of command execution."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    execution_time: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DispatchRequest:
    """A resolved command ready to run."""
    intent: Optional[str]
    action: Optional[str]
    slot: Any = None
    weight: int = 1
    source: str = "direct"
    transcript: Optional[str] = None


@dataclass
class CommandHistory:
    """Entry in command history."""
    command: DispatchRequest
    result: ExecutionResult
    timestamp: datetime = field(default_factory=datetime.now)


def resolve_action(key: Optional[str]) -> Optional[str]:
    """Map an intent name, action key or legacy alias onto a canonical action key."""
    if not key:
        return None
    if key in INTENT_ACTIONS:
        return INTENT_ACTIONS[key]
    return ACTION_ALIASES.get(key, key)


class CommandDispatcher:
    """Executes player actions for matched voice commands."""

    def __init__(self, player: PlayerControl, logger: logging.Logger,
                 settings: Optional[VoiceSettings] = None,
                 event_bus: Optional[EventBus] = None,
                 volume_step: float = VOLUME_STEP):
        self.player = player
        self.logger = logger
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self.volume_step = volume_step

        # Command history
        self.command_history: List[CommandHistory] = []
        self.max_history_size = 100

        # Execution statistics
        self.commands_executed = 0
        self.commands_failed = 0
        self.usage_count = settings.load().usage_count if settings else 0
        self.last_command_time: Optional[datetime] = None

        # Thread safety
        self.history_lock = threading.Lock()

    def get_command_handlers(self) -> Dict[str, Callable[[Any], bool]]:
        """Get mapping of action keys to handler functions."""
        player = self.player
        return {
            "play": lambda slot: player.play(),
            "pause": lambda slot: player.pause(),
            "stop": lambda slot: self._stop(),
            "next": lambda slot: player.next_video(),
            "previous": lambda slot: player.previous_video(),
            "restart": lambda slot: self._restart(),
            "forward_10": lambda slot: player.seek_by(self._seconds(slot, 10)),
            "forward_20": lambda slot: player.seek_by(self._seconds(slot, 20)),
            "forward_30": lambda slot: player.seek_by(self._seconds(slot, 30)),
            "rewind_10": lambda slot: player.seek_by(-self._seconds(slot, 10)),
            "rewind_20": lambda slot: player.seek_by(-self._seconds(slot, 20)),
            "rewind_30": lambda slot: player.seek_by(-self._seconds(slot, 30)),
            "volume_max": lambda slot: player.set_volume(1.0),
            "mute": lambda slot: player.set_muted(True),
            "unmute": lambda slot: player.set_muted(False),
            "volume_up": lambda slot: player.set_volume(player.volume + self.volume_step),
            "volume_down": lambda slot: player.set_volume(player.volume - self.volume_step),
            "fullscreen_enter": lambda slot: player.set_fullscreen(True),
            "fullscreen_exit": lambda slot: player.set_fullscreen(False),
            "speed_0.5": lambda slot: player.set_rate(0.5),
            "speed_normal": lambda slot: player.set_rate(1.0),
            "speed_1.25": lambda slot: player.set_rate(1.25),
            "speed_1.5": lambda slot: player.set_rate(1.5),
            "speed_2.0": lambda slot: player.set_rate(2.0),
        }

    @staticmethod
    def _seconds(slot: Any, default: float) -> float:
        if isinstance(slot, dict):
            value = slot.get("seconds")
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return float(value)
        return float(default)

    def _stop(self) -> bool:
        paused = self.player.pause()
        return self.player.seek(0) and paused

    def _restart(self) -> bool:
        self.player.seek(0)
        return self.player.play()

    def build_request(self, target: Any, source: str = "direct") -> DispatchRequest:
        """Normalize the accepted target shapes into a DispatchRequest."""
        if isinstance(target, MatchedCommand):
            action = resolve_action(target.action) or resolve_action(target.intent)
            return DispatchRequest(
                intent=target.intent,
                action=action,
                slot=target.slot,
                weight=target.usage_count,
                source=source if source != "direct" else f"voice:{target.match_pass}",
                transcript=target.transcript,
            )

        if isinstance(target, str):
            action = resolve_action(target.strip())
            intent = target.strip() if target.strip() in INTENT_ACTIONS else ACTION_INTENTS.get(action)
            return DispatchRequest(intent=intent, action=action, source=source)

        # Custom command or anything else carrying an action key
        action = resolve_action(getattr(target, "action", None))
        return DispatchRequest(
            intent=ACTION_INTENTS.get(action),
            action=action,
            source="custom" if hasattr(target, "triggers") else source,
            transcript=getattr(target, "name", None),
        )

    def execute(self, target: Any, source: str = "direct") -> ExecutionResult:
        """Run a MatchedCommand, CustomCommand, intent name or action key."""
        start_time = time.time()
        request = self.build_request(target, source)

        handler = self.get_command_handlers().get(request.action) if request.action else None
        if handler is None:
            self.logger.warning(f"Ignoring unknown action: {request.action!r} (intent {request.intent!r})")
            self.commands_failed += 1
            return ExecutionResult(
                success=False,
                message=f"Unknown action: {request.action}",
                error="unknown_action",
                execution_time=time.time() - start_time
            )

        self.logger.info(f"Dispatching command: {request.intent or '-'} -> {request.action}")

        try:
            applied = bool(handler(request.slot))
        except Exception as e:
            self.logger.error(f"Error executing action {request.action}: {e}")
            self.commands_failed += 1
            result = ExecutionResult(
                success=False,
                message=responses.COMMAND_FEEDBACK["failed"],
                error=str(e),
                execution_time=time.time() - start_time
            )
            self._record_command(request, result)
            return result

        self._count_usage(request.weight)
        self._broadcast(request)

        self.commands_executed += 1
        self.last_command_time = datetime.now()

        result = ExecutionResult(
            success=applied,
            message=responses.command_executed(request.intent or request.action),
            data={"intent": request.intent, "action": request.action, "slot": request.slot,
                  "player": self.player.snapshot().to_dict()},
            error=None if applied else "unsupported",
            execution_time=time.time() - start_time
        )
        self._record_command(request, result)
        return result

    def _count_usage(self, weight: int):
        weight = weight if isinstance(weight, int) and weight > 0 else 1
        if self.settings is not None:
            self.usage_count = self.settings.increment_usage(weight)
        else:
            self.usage_count += weight

    def _broadcast(self, request: DispatchRequest):
        payload = {"intent": request.intent, "action": request.action, "slot": request.slot}
        try:
            self.event_bus.publish(VOICE_COMMAND, payload)
        except Exception as e:
            self.logger.error(f"voice_command subscriber failed: {e}")

    def _record_command(self, command: DispatchRequest, result: ExecutionResult):
        with self.history_lock:
            self.command_history.append(CommandHistory(command=command, result=result))

            if len(self.command_history) > self.max_history_size:
                self.command_history = self.command_history[-self.max_history_size:]

    def get_command_history(self, limit: int = 10) -> List[CommandHistory]:
        """Get recent command history."""
        with self.history_lock:
            return self.command_history[-limit:] if limit else self.command_history.copy()

    def get_statistics(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        with self.history_lock:
            recent_commands = [
                entry for entry in self.command_history
                if datetime.now() - entry.timestamp < timedelta(hours=1)
            ]
            history_size = len(self.command_history)

        return {
            "total_commands": self.commands_executed,
            "failed_commands": self.commands_failed,
            "success_rate": self.commands_executed / max(1, self.commands_executed + self.commands_failed),
            "commands_last_hour": len(recent_commands),
            "history_size": history_size,
            "usage_count": self.usage_count,
            "last_command_time": self.last_command_time.isoformat() if self.last_command_time else None
        }

    def supported_actions(self) -> Tuple[str, ...]:
        return tuple(self.get_command_handlers().keys())

    def clear_history(self):
        with self.history_lock:
            self.command_history.clear()
        self.logger.info("Command history cleared")

    def shutdown(self):
        self.logger.info("Shutting down command dispatcher...")
        self.clear_history()
        self.logger.info("Command dispatcher shutdown complete")
