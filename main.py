#!/usr/bin/env python3
"""
VidVoice - Main Entry Point

Voice control for a video player: spoken (or typed) utterances are matched
against a multilingual command catalog and turned into player actions.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from config import Config, setup_logging, check_dependencies, get_platform_info
from vidvoice.core.command_dispatcher import ACTION_ALIASES, CommandDispatcher
from vidvoice.core.custom_commands import CustomCommandRegistry
from vidvoice.core.listening import ListeningStateMachine
from vidvoice.core.matcher import CommandMatcher
from vidvoice.core.player import PlayerControl, VirtualPlayer
from vidvoice.core.speech_engine import SpeechEngine
from vidvoice.data import responses
from vidvoice.data.command_catalog import get_catalog, load_catalog
from vidvoice.services.membership import MembershipTracker
from vidvoice.services.settings import VoiceSettings
from vidvoice.services.shortcuts import ShortcutBridge
from vidvoice.services.storage import JsonFileStore
from vidvoice.services.transcription import TranscriptionClient
from vidvoice.utils.error_handler import ErrorHandler
from vidvoice.utils.event_bus import EventBus, VOICE_COMMAND

__version__ = "1.0.0"

WELCOME_TEXT = "Welcome to VidVoice! Your trial includes {remaining} voice commands."

HELP_TEXT = """Type a command (e.g. "pause", "volume up", "skip ahead") or:
  /listen   start listening on the microphone
  /stop     stop listening
  /always   toggle always-listening mode
  /status   show player and listening state
  /quit     exit"""


class VidVoice:
    """Main VidVoice application orchestrator."""

    def __init__(self, config_path: Optional[str] = None):
        self.config = Config.load_from_file(config_path) if config_path else Config()
        self.config.load_environment_variables()
        self.logger = setup_logging(self.config)
        self.error_handler = ErrorHandler(self.logger)

        # Components (initialized later)
        self.store: Optional[JsonFileStore] = None
        self.event_bus = EventBus()
        self.player: Optional[PlayerControl] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        self.custom_commands: Optional[CustomCommandRegistry] = None
        self.speech_engine: Optional[SpeechEngine] = None
        self.listening: Optional[ListeningStateMachine] = None
        self.membership: Optional[MembershipTracker] = None
        self.shortcuts: Optional[ShortcutBridge] = None

        # Application state
        self.running = False
        self.shutdown_event = threading.Event()

        self._setup_signal_handlers()

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}. Initiating graceful shutdown...")
            self.shutdown_event.set()
            self.shutdown_gracefully()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def initialize_services(self, with_audio: bool = True) -> bool:
        """Build every component in dependency order."""
        issues = self.config.validate()
        if issues:
            for issue in issues:
                self.logger.error(f"Configuration issue: {issue}")
            return False

        try:
            self.logger.info("Initializing VidVoice services...")

            self.store = JsonFileStore(self.config.storage.store_file, self.logger.getChild("storage"))
            if self.config.storage.scrub_on_startup:
                self.store.clear_corrupted_data()
            settings = VoiceSettings(self.store, self.logger)

            if self.config.catalog.intents_file or self.config.catalog.commands_file:
                catalog = load_catalog(self.config.catalog.intents_file, self.config.catalog.commands_file)
            else:
                catalog = get_catalog()
            matcher = CommandMatcher(catalog, self.logger, self.config.voice.default_language)

            engine = VirtualPlayer(
                duration=self.config.player.default_duration,
                volume=self.config.player.default_volume
            )
            self.player = PlayerControl(engine, self.logger)

            self.dispatcher = CommandDispatcher(
                self.player, self.logger, settings, self.event_bus,
                volume_step=self.config.player.volume_step
            )
            known_actions = set(self.dispatcher.supported_actions()) | set(ACTION_ALIASES)
            self.custom_commands = CustomCommandRegistry(self.store, self.logger, known_actions)

            self.membership = MembershipTracker(self.store, self.logger)
            self.event_bus.subscribe(VOICE_COMMAND, self._count_membership_usage)
            self.shortcuts = ShortcutBridge(self.dispatcher, self.event_bus, self.logger, self.store)
            self.shortcuts.register_shortcuts(catalog, self.config.voice.language)

            transcriber = TranscriptionClient(self.config.transcription, self.logger)
            self.speech_engine = SpeechEngine(self.config.voice, self.logger, transcriber)
            if with_audio:
                self.speech_engine.initialize()

            session_factory = self.speech_engine.create_session if self.speech_engine.capture_available else None
            self.listening = ListeningStateMachine(
                self.config.voice,
                self.logger,
                matcher,
                self.dispatcher,
                custom_commands=self.custom_commands,
                session_factory=session_factory,
                settings=settings,
                error_handler=self.error_handler,
                on_status=self._on_status,
            )

            self.logger.info(f"Loaded {len(catalog.intents)} intents and {len(catalog.commands)} "
                             f"legacy commands ({', '.join(catalog.languages())})")
            self.logger.info("All services initialized successfully")
            return True

        except Exception as e:
            self.error_handler.handle_error(e, context={"phase": "initialize"})
            return False

    def _count_membership_usage(self, payload):
        if self.membership is not None:
            self.membership.use_feature()

    def _on_status(self, message: str):
        if not message:
            return
        print(f"[{self.listening.state.value if self.listening else 'idle'}] {message}")
        if self.config.voice.spoken_feedback and self.speech_engine:
            self.speech_engine.speak(message)

    def run_command(self, text: str) -> int:
        """Process one typed utterance."""
        self.listening.submit_transcript(text)
        history = self.dispatcher.get_command_history(limit=1)
        return 0 if history and history[-1].result.success else 1

    def print_status(self):
        snapshot = self.listening.snapshot()
        player = self.player.snapshot()
        print(f"Listening: {snapshot.state.value} (always: {snapshot.always_listening}, "
              f"session active: {snapshot.session_active})")
        print(f"Last command: {snapshot.last_command or '-'} (confidence {snapshot.confidence:.2f})")
        print(f"Player: {'playing' if player.playing else 'paused'}, position {player.position:.1f}s, "
              f"volume {player.volume:.1f}{' (muted)' if player.muted else ''}, "
              f"rate {player.playback_rate}x, fullscreen {player.fullscreen}")
        print(f"Commands used: {self.dispatcher.usage_count}, "
              f"remaining quota: {self.membership.remaining_usage()}")

    def greet_first_login(self) -> bool:
        """Show the welcome text once per install; returns whether it was shown."""
        if not self.membership.state.is_first_login:
            return False
        print(WELCOME_TEXT.format(remaining=self.membership.remaining_usage()))
        self.membership.mark_first_login_complete()
        return True

    def run_interactive(self) -> int:
        print(HELP_TEXT)

        while self.running and not self.shutdown_event.is_set():
            try:
                line = input("> ").strip()
            except EOFError:
                break

            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            elif line == "/listen":
                self.listening.start()
            elif line == "/stop":
                self.listening.stop()
                print(responses.STATUS_UPDATES["stopped"])
            elif line == "/always":
                enabled = self.listening.toggle_always_listening()
                print(responses.STATUS_UPDATES["always_on" if enabled else "always_off"])
            elif line == "/status":
                self.print_status()
            elif line == "/help":
                print(HELP_TEXT)
            else:
                self.listening.submit_transcript(line)

        return 0

    def run(self, listen: bool = False, command: Optional[str] = None) -> int:
        """Run the VidVoice application."""
        self.logger.info("Starting VidVoice...")

        if not self.initialize_services(with_audio=command is None):
            self.logger.error("Service initialization failed. Exiting.")
            return 1

        self.running = True

        try:
            if command is not None:
                return self.run_command(command)

            self.greet_first_login()
            self.listening.start_worker()
            if listen or self.listening.always_listening:
                self.listening.start()

            return self.run_interactive()

        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
        except Exception as e:
            self.error_handler.handle_error(e, context={"phase": "run"})
            return 1
        finally:
            self.shutdown_gracefully()

        return 0

    def shutdown_gracefully(self):
        """Perform graceful shutdown of all services."""
        if not self.running:
            return

        self.logger.info("Shutting down VidVoice gracefully...")
        self.running = False
        self.shutdown_event.set()

        try:
            if self.listening:
                self.listening.shutdown()

            if self.shortcuts:
                self.shortcuts.shutdown()

            if self.dispatcher:
                self.dispatcher.shutdown()

            if self.speech_engine:
                self.speech_engine.shutdown()

            self.error_handler.shutdown()
            self.logger.info("VidVoice shutdown complete")

        except Exception as e:
            self.logger.error(f"Error during shutdown: {e}")

    def test_configuration(self) -> bool:
        """Check configuration, catalog and audio support, then report."""
        self.logger.info("Running configuration test...")

        issues = self.config.validate()
        if issues:
            for issue in issues:
                print(f"[FAIL] {issue}")
            return False
        print("[OK] Configuration is valid")

        for name, available in check_dependencies().items():
            print(f"[{'OK' if available else '--'}] {name}")

        if not self.initialize_services(with_audio=True):
            print("[FAIL] Service initialization failed")
            return False
        print("[OK] Services initialized")

        microphones = self.speech_engine.list_microphones()
        print(f"[{'OK' if self.speech_engine.capture_available else '--'}] "
              f"Voice capture ({len(microphones)} microphones)")

        platform_info = get_platform_info()
        print(f"Platform: {platform_info['system']} {platform_info['release']} "
              f"(Python {platform_info['python_version']})")
        return True


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="VidVoice - voice control for video playback",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                        # Interactive mode, type commands
  python main.py --listen               # Start listening on the microphone
  python main.py --always --language es # Always listen, Spanish commands
  python main.py --command "pause"      # Run one command and exit
  python main.py --test                 # Test configuration and exit
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file (YAML)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )

    parser.add_argument(
        "--language", "-l",
        type=str,
        help="Command language (e.g. en, zh-TW, es, fr, de, ja)"
    )

    parser.add_argument(
        "--listen",
        action="store_true",
        help="Start listening on the microphone immediately"
    )

    parser.add_argument(
        "--always", "-a",
        action="store_true",
        help="Enable always-listening mode"
    )

    parser.add_argument(
        "--command",
        type=str,
        metavar="TEXT",
        help="Process one command transcript and exit"
    )

    parser.add_argument(
        "--test", "-t",
        action="store_true",
        help="Test configuration and audio support, then exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"VidVoice {__version__}"
    )

    return parser


def main() -> int:
    """Main entry point for the VidVoice application."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        app = VidVoice(config_path=args.config)

        if args.verbose:
            app.logger.setLevel(logging.DEBUG)
            logging.getLogger().setLevel(logging.DEBUG)

        if args.language:
            app.config.voice.language = args.language
        if args.always:
            app.config.voice.always_listening = True

        if args.test:
            success = app.test_configuration()
            return 0 if success else 1

        return app.run(listen=args.listen, command=args.command)

    except KeyboardInterrupt:
        print("\nVidVoice stopped by user")
        return 0
    except Exception as e:
        print(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
