#!/usr/bin/env python3
"""
VidVoice Response Templates

Status strings shown (and optionally spoken) while voice control runs.
"""

# Status updates
STATUS_UPDATES = {
    "listening": "Listening...",
    "processing": "Processing...",
    "stopped": "Voice control stopped",
    "always_on": "Always listening enabled",
    "always_off": "Always listening disabled",
}

# Command feedback
COMMAND_FEEDBACK = {
    "executed": "Command executed: {name}",
    "not_recognized": "Command not recognized: {transcript}",
    "failed": "Failed to process command",
    "low_confidence": "Low confidence ({confidence:.2f}) for: {transcript}",
}

# Error responses
ERROR_RESPONSES = {
    "no-speech": "No speech detected",
    "network": "Voice recognition failed. Please try again.",
    "transcription": "Error processing voice input",
    "not-allowed": "Microphone permission denied",
    "audio-capture": "No microphone available",
    "service-not-allowed": "Speech recognition is not available",
    "unknown": "Voice control error",
}


def command_executed(intent_or_action: str) -> str:
    """Status line for a dispatched command, e.g. 'PauseVideoIntent' -> 'PauseVideo'."""
    name = intent_or_action.replace("Intent", "")
    return COMMAND_FEEDBACK["executed"].format(name=name)


def error_message(code: str) -> str:
    return ERROR_RESPONSES.get(code, ERROR_RESPONSES["unknown"])
