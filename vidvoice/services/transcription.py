#!/usr/bin/env python3
"""
VidVoice Transcription Client

Uploads a recorded clip to the speech-to-text endpoint and returns the
transcript. Failures raise TranscriptionError; the caller decides whether
to surface them, nothing here retries.
"""

import logging
from typing import Optional

import requests

from vidvoice.utils.text_utils import get_language_code

DEFAULT_ENDPOINT = "https://toolkit.rork.com/stt/transcribe/"


class TranscriptionError(Exception):
    """Recoverable transcription failure (HTTP, network or payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TranscriptionClient:
    """Thin multipart client for the transcription endpoint."""

    def __init__(self, config, logger: logging.Logger, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logger
        self.endpoint = getattr(config, "endpoint", None) or DEFAULT_ENDPOINT
        self.timeout = getattr(config, "timeout_seconds", 15.0)
        self.session = session

        # Statistics
        self.requests_made = 0
        self.requests_failed = 0

    def transcribe(self, audio: bytes, language: str, filename: str = "recording.wav",
                   mime_type: str = "audio/wav") -> str:
        """Transcribe one audio clip and return its text."""
        files = {"audio": (filename, audio, mime_type)}
        data = {"language": get_language_code(language)}
        post = self.session.post if self.session is not None else requests.post

        self.requests_made += 1
        try:
            response = post(self.endpoint, files=files, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.requests_failed += 1
            self.logger.error(f"Transcription request failed: {e}")
            raise TranscriptionError(f"Transcription request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self.requests_failed += 1
            self.logger.error(f"Transcription API error: {response.status_code} {response.reason}")
            raise TranscriptionError(
                f"Transcription API error: {response.status_code}", status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            self.requests_failed += 1
            raise TranscriptionError("Transcription response is not JSON") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            self.requests_failed += 1
            raise TranscriptionError("Transcription response has no text")

        self.logger.debug(f"Transcribed: {text}")
        return text
