#!/usr/bin/env python3
"""
Tests for command dispatch and player control
"""

import pytest
from unittest.mock import Mock

from vidvoice.core.command_dispatcher import CommandDispatcher, resolve_action
from vidvoice.core.custom_commands import CustomCommand
from vidvoice.core.matcher import CommandMatcher
from vidvoice.core.player import PlayerControl, VirtualPlayer
from vidvoice.utils.event_bus import EventBus, VOICE_COMMAND


def test_volume_up_clamps_to_one(engine, dispatcher):
    engine.volume = 0.9
    result = dispatcher.execute("volume_up")
    assert result.success
    assert engine.volume == 1.0


def test_volume_down_clamps_to_zero(engine, dispatcher):
    engine.volume = 0.1
    dispatcher.execute("VolumeDownIntent")
    assert engine.volume == 0.0


def test_rewind_clamps_to_start(engine, dispatcher):
    engine.current_time = 5.0
    dispatcher.execute("rewind_30")
    assert engine.current_time == 0.0


def test_forward_clamps_to_duration(engine, dispatcher):
    engine.current_time = 95.0
    dispatcher.execute("Forward10Intent")
    assert engine.current_time == 100.0


def test_transport_actions(engine, dispatcher):
    dispatcher.execute("play")
    assert engine.playing

    engine.current_time = 42.0
    dispatcher.execute("StopVideoIntent")
    assert not engine.playing
    assert engine.current_time == 0.0

    engine.current_time = 42.0
    dispatcher.execute("ReplayVideoIntent")
    assert engine.playing
    assert engine.current_time == 0.0


def test_mute_rate_and_fullscreen(engine, dispatcher):
    dispatcher.execute("mute")
    assert engine.muted
    dispatcher.execute("UnmuteIntent")
    assert not engine.muted

    dispatcher.execute("Speed200Intent")
    assert engine.playback_rate == 2.0
    dispatcher.execute("speed_normal")
    assert engine.playback_rate == 1.0

    dispatcher.execute("EnterFullscreenIntent")
    assert engine.fullscreen
    dispatcher.execute("fullscreen_exit")
    assert not engine.fullscreen


@pytest.mark.parametrize("alias, expected", [
    ("fullscreen", "fullscreen_enter"),
    ("exit_fullscreen", "fullscreen_exit"),
    ("speed_0_5", "speed_0.5"),
    ("speed_1_25", "speed_1.25"),
    ("speed_1_5", "speed_1.5"),
    ("speed_2_0", "speed_2.0"),
    ("PauseVideoIntent", "pause"),
])
def test_resolve_action(alias, expected):
    assert resolve_action(alias) == expected


def test_legacy_alias_executes(engine, dispatcher):
    dispatcher.execute("speed_1_5")
    assert engine.playback_rate == 1.5


def test_unknown_action_is_ignored(engine, dispatcher, event_bus):
    handler = Mock()
    event_bus.subscribe(VOICE_COMMAND, handler)

    result = dispatcher.execute("dance")

    assert not result.success
    assert dispatcher.usage_count == 0
    handler.assert_not_called()


def test_usage_counted_and_persisted(dispatcher, settings):
    dispatcher.execute("play")
    dispatcher.execute("pause")
    assert dispatcher.usage_count == 2
    assert settings.load().usage_count == 2


def test_legacy_match_uses_command_weight(catalog, logger, dispatcher, settings):
    match = CommandMatcher(catalog, logger).match("faster", "en")
    dispatcher.execute(match)
    assert settings.load().usage_count == match.usage_count


def test_voice_command_event_published(dispatcher, event_bus):
    received = []
    event_bus.subscribe(VOICE_COMMAND, received.append)

    dispatcher.execute("Rewind10Intent")

    assert received == [{"intent": "Rewind10Intent", "action": "rewind_10", "slot": None}]


def test_failing_subscriber_does_not_break_dispatch(engine, dispatcher, event_bus):
    event_bus.subscribe(VOICE_COMMAND, Mock(side_effect=RuntimeError("boom")))
    result = dispatcher.execute("play")
    assert result.success
    assert engine.playing


def test_custom_command_dispatch(engine, dispatcher):
    command = CustomCommand.create("Lights out", "exit_fullscreen")
    engine.fullscreen = True
    result = dispatcher.execute(command)
    assert result.success
    assert not engine.fullscreen
    assert dispatcher.get_command_history(limit=1)[0].command.source == "custom"


def test_unsupported_capability_is_a_no_op(logger):
    class MinimalEngine:
        def __init__(self):
            self.playing = False

        def play(self):
            self.playing = True

        def pause(self):
            self.playing = False

    player = PlayerControl(MinimalEngine(), logger)
    dispatcher = CommandDispatcher(player, logger, event_bus=EventBus())

    result = dispatcher.execute("volume_up")
    assert not result.success
    assert result.error == "unsupported"
    assert dispatcher.execute("play").success


def test_next_and_previous_need_a_playlist(logger):
    engine = VirtualPlayer(duration=10.0, playlist=["a.mp4", "b.mp4"])
    dispatcher = CommandDispatcher(PlayerControl(engine, logger), logger)

    dispatcher.execute("NextVideoIntent")
    assert engine.current_source == "b.mp4"
    dispatcher.execute("previous")
    assert engine.current_source == "a.mp4"


def test_history_is_bounded(dispatcher):
    for _ in range(105):
        dispatcher.execute("play")

    stats = dispatcher.get_statistics()
    assert stats["history_size"] == 100
    assert stats["total_commands"] == 105

    dispatcher.clear_history()
    assert dispatcher.get_command_history() == []
