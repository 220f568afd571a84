#!/usr/bin/env python3
"""
Test for VidVoice main functionality
"""

import logging

import pytest

import config
import main


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(f'''
voice:
  language: en
  always_listening: false
storage:
  store_file: {tmp_path / "store.json"}
  scrub_on_startup: true
log_file: {tmp_path / "vidvoice.log"}
''')
    return str(path)


def test_main_imports():
    assert hasattr(main, 'VidVoice')
    assert hasattr(main, 'create_argument_parser')


def test_argument_parser():
    parser = main.create_argument_parser()

    args = parser.parse_args([])
    assert not args.listen
    assert not args.always
    assert not args.test
    assert not args.verbose
    assert args.command is None
    assert args.language is None

    args = parser.parse_args(['--listen', '--always', '--language', 'zh-TW'])
    assert args.listen
    assert args.always
    assert args.language == 'zh-TW'

    args = parser.parse_args(['--command', 'pause video'])
    assert args.command == 'pause video'


def test_vidvoice_initialization(config_file):
    app = main.VidVoice(config_path=config_file)
    assert app.config is not None
    assert app.logger is not None
    assert app.error_handler is not None


def test_single_command_run(config_file):
    app = main.VidVoice(config_path=config_file)
    assert app.run(command="play") == 0
    assert app.player.snapshot().playing
    assert app.dispatcher.usage_count == 1
    assert app.membership.state.usage_count == 1


def test_unrecognized_command_exit_code(config_file):
    app = main.VidVoice(config_path=config_file)
    assert app.run(command="tell me a joke") == 1


def test_startup_scrubs_corrupted_store(tmp_path, config_file):
    (tmp_path / "store.json").write_text('{"voiceControlSettings": "[object Object]"}')
    app = main.VidVoice(config_path=config_file)
    assert app.initialize_services(with_audio=False)
    assert "voiceControlSettings" not in app.store.keys()


def test_configuration_defaults():
    default_config = config.Config()
    assert default_config.voice.language == "en"
    assert default_config.voice.keep_alive_interval == 5.0
    assert default_config.voice.interim_confidence_threshold == 0.8
    assert default_config.voice.final_confidence_threshold == 0.3
    assert default_config.transcription.default_confidence == 0.85
    assert default_config.player.volume_step == 0.2
    assert default_config.validate() == []


def test_configuration_loading(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('''
voice:
  language: fr
  keep_alive_interval: 10
player:
  volume_step: 0.1
''')
    loaded = config.Config.load_from_file(str(path))
    assert loaded.voice.language == "fr"
    assert loaded.voice.keep_alive_interval == 10
    assert loaded.player.volume_step == 0.1

    saved = tmp_path / "saved.yaml"
    loaded.save_to_file(str(saved))
    assert config.Config.load_from_file(str(saved)).voice.language == "fr"


def test_configuration_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        config.Config.load_from_file(str(tmp_path / "missing.yaml"))

    bad = tmp_path / "bad.yaml"
    bad.write_text("voice:\n  no_such_option: 1\n")
    with pytest.raises(ValueError):
        config.Config.load_from_file(str(bad))


def test_configuration_validation():
    bad = config.Config()
    bad.voice.final_confidence_threshold = 1.5
    bad.transcription.endpoint = "ftp://example"
    assert len(bad.validate()) == 2


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("VIDVOICE_LANGUAGE", "de")
    monkeypatch.setenv("VIDVOICE_ALWAYS_LISTENING", "true")
    monkeypatch.setenv("TRANSCRIPTION_TIMEOUT", "3")

    cfg = config.Config()
    cfg.load_environment_variables()
    assert cfg.voice.language == "de"
    assert cfg.voice.always_listening is True
    assert cfg.transcription.timeout_seconds == 3.0


def test_logging_setup(tmp_path):
    test_config = config.Config()
    test_config.log_level = "DEBUG"
    test_config.log_file = str(tmp_path / "test_vidvoice.log")

    logger = config.setup_logging(test_config)
    assert logger.level == logging.DEBUG
    assert logger.name == "vidvoice"
    logger.info("hello")
    assert (tmp_path / "test_vidvoice.log").exists()


def test_dependency_check_reports_booleans():
    deps = config.check_dependencies()
    assert set(deps) == {"speech_recognition", "pyaudio", "pyttsx3"}
    assert all(isinstance(value, bool) for value in deps.values())


def test_first_login_greeting_shown_once(config_file, capsys):
    app = main.VidVoice(config_path=config_file)
    assert app.initialize_services(with_audio=False)

    assert app.greet_first_login()
    assert "2000 voice commands" in capsys.readouterr().out
    assert not app.greet_first_login()

    again = main.VidVoice(config_path=config_file)
    assert again.initialize_services(with_audio=False)
    assert not again.greet_first_login()
