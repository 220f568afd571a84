#!/usr/bin/env python3
"""
Tests for the transcription client
"""

import logging
from unittest.mock import Mock, patch

import pytest
import requests

from config import TranscriptionConfig
from vidvoice.services.transcription import TranscriptionClient, TranscriptionError


@pytest.fixture
def client():
    return TranscriptionClient(TranscriptionConfig(), logging.getLogger("vidvoice.tests"))


def _response(status=200, payload=None, json_error=None):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.reason = "OK" if response.ok else "Error"
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def test_successful_transcription(client):
    with patch("vidvoice.services.transcription.requests.post",
               return_value=_response(payload={"text": "Pause"})) as post:
        assert client.transcribe(b"audio-bytes", "es") == "Pause"

    args, kwargs = post.call_args
    assert args[0] == "https://toolkit.rork.com/stt/transcribe/"
    assert kwargs["files"]["audio"][1] == b"audio-bytes"
    assert kwargs["data"] == {"language": "es-ES"}
    assert kwargs["timeout"] == 15.0


def test_unknown_language_uses_default_code(client):
    with patch("vidvoice.services.transcription.requests.post",
               return_value=_response(payload={"text": "x"})) as post:
        client.transcribe(b"a", "xx")
    assert post.call_args.kwargs["data"] == {"language": "en-US"}


def test_http_error_raises(client):
    with patch("vidvoice.services.transcription.requests.post", return_value=_response(status=503)):
        with pytest.raises(TranscriptionError) as excinfo:
            client.transcribe(b"a", "en")
    assert excinfo.value.status_code == 503
    assert client.requests_failed == 1


def test_redirect_status_is_a_failure(client):
    response = _response(status=304, payload={"text": "pause"})
    response.ok = True
    with patch("vidvoice.services.transcription.requests.post", return_value=response):
        with pytest.raises(TranscriptionError) as excinfo:
            client.transcribe(b"a", "en")
    assert excinfo.value.status_code == 304


def test_network_failure_raises(client):
    with patch("vidvoice.services.transcription.requests.post",
               side_effect=requests.exceptions.ConnectionError("unreachable")):
        with pytest.raises(TranscriptionError):
            client.transcribe(b"a", "en")


def test_invalid_json_raises(client):
    with patch("vidvoice.services.transcription.requests.post",
               return_value=_response(json_error=ValueError("bad json"))):
        with pytest.raises(TranscriptionError):
            client.transcribe(b"a", "en")


def test_missing_text_raises(client):
    with patch("vidvoice.services.transcription.requests.post",
               return_value=_response(payload={"result": "pause"})):
        with pytest.raises(TranscriptionError):
            client.transcribe(b"a", "en")


def test_uses_injected_session():
    session = Mock()
    session.post.return_value = _response(payload={"text": "play"})
    client = TranscriptionClient(TranscriptionConfig(), logging.getLogger("vidvoice.tests"), session=session)

    assert client.transcribe(b"a", "en") == "play"
    session.post.assert_called_once()
