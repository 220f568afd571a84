#!/usr/bin/env python3
"""
Tests for status and error message templates
"""

from vidvoice.data import responses


def test_command_executed_strips_intent_suffix():
    assert responses.command_executed("PauseVideoIntent") == "Command executed: PauseVideo"
    assert responses.command_executed("volume_up") == "Command executed: volume_up"


def test_error_message_known_and_unknown_codes():
    assert responses.error_message("service-not-allowed") == "Speech recognition is not available"
    assert responses.error_message("no-speech") == "No speech detected"
    assert responses.error_message("something-new") == responses.ERROR_RESPONSES["unknown"]
