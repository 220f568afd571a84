#!/usr/bin/env python3
"""
VidVoice Custom Commands

User-defined voice commands: a spoken name bound to one player action.
The name doubles as the only trigger phrase. Commands are persisted as a
JSON list in the key-value store.
"""

import html
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Collection, Dict, List, Optional, Tuple

from vidvoice.core.command_dispatcher import ExecutionResult
from vidvoice.services.storage import KeyValueStore
from vidvoice.utils.text_utils import normalize_transcript

STORAGE_KEY = "customCommands"

MESSAGES = {
    "fill_all_fields": "Please fill in both the command name and the action",
    "name_exists": "A command with this name already exists",
    "unknown_action": "Unknown action: {action}",
    "not_found": "Command not found",
    "added": "Command added successfully",
    "updated": "Command updated successfully",
    "deleted": "Command deleted successfully",
}


@dataclass(frozen=True)
class CustomCommand:
    """A named trigger bound to an action key."""
    id: str
    name: str
    triggers: Tuple[str, ...]
    action: str

    @classmethod
    def create(cls, name: str, action: str, command_id: Optional[str] = None) -> "CustomCommand":
        name = name.strip()
        return cls(
            id=command_id or uuid.uuid4().hex[:12],
            name=name,
            triggers=(name.lower(),),
            action=action.strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["triggers"] = list(self.triggers)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["CustomCommand"]:
        try:
            name = data["name"]
            action = data["action"]
            command_id = str(data["id"])
        except (KeyError, TypeError):
            return None
        if not isinstance(name, str) or not isinstance(action, str) or not name.strip():
            return None
        triggers = data.get("triggers")
        if not isinstance(triggers, list) or not all(isinstance(t, str) for t in triggers) or not triggers:
            triggers = [name.lower()]
        return cls(id=command_id, name=name, triggers=tuple(t.lower() for t in triggers), action=action)


class CustomCommandValidator:
    """Validates a custom command before it is stored."""

    def __init__(self, known_actions: Optional[Collection[str]] = None):
        self.known_actions = set(known_actions) if known_actions else None

    def validate(self, name: str, action: str, existing: List[CustomCommand],
                 editing_id: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        if not name or not name.strip() or not action or not action.strip():
            return False, MESSAGES["fill_all_fields"]

        # An edited command may keep its own name
        if any(cmd.name.lower() == name.strip().lower() and cmd.id != editing_id for cmd in existing):
            return False, MESSAGES["name_exists"]

        if self.known_actions is not None and action.strip() not in self.known_actions:
            return False, MESSAGES["unknown_action"].format(action=action.strip())

        return True, None


class CustomCommandRegistry:
    """Persistent collection of custom commands."""

    def __init__(self, store: KeyValueStore, logger: logging.Logger,
                 known_actions: Optional[Collection[str]] = None):
        self.store = store
        self.logger = logger
        self.validator = CustomCommandValidator(known_actions)
        self._lock = threading.Lock()
        self._commands: List[CustomCommand] = self._load()

    def _load(self) -> List[CustomCommand]:
        raw = self.store.get_json(STORAGE_KEY, fallback=[])
        if not isinstance(raw, list):
            self.logger.warning("Stored custom commands are not a list, starting empty")
            return []

        commands = []
        for entry in raw:
            command = CustomCommand.from_dict(entry) if isinstance(entry, dict) else None
            if command is None:
                self.logger.warning(f"Skipping malformed custom command: {entry!r}")
                continue
            commands.append(command)
        return commands

    def _persist(self):
        self.store.set_json(STORAGE_KEY, [cmd.to_dict() for cmd in self._commands])

    def save(self, name: str, action: str, editing_id: Optional[str] = None) -> ExecutionResult:
        """Add a command, or replace the one with ``editing_id``."""
        with self._lock:
            is_valid, error_message = self.validator.validate(name, action, self._commands, editing_id)
            if not is_valid:
                self.logger.info(f"Rejected custom command '{name}': {error_message}")
                return ExecutionResult(success=False, message=error_message, error="validation")

            if editing_id is not None:
                index = next((i for i, cmd in enumerate(self._commands) if cmd.id == editing_id), None)
                if index is None:
                    return ExecutionResult(success=False, message=MESSAGES["not_found"], error="not_found")
                command = CustomCommand.create(name, action, editing_id)
                self._commands[index] = command
                message = MESSAGES["updated"]
            else:
                command = CustomCommand.create(name, action)
                self._commands.append(command)
                message = MESSAGES["added"]

            self._persist()

        self.logger.info(f"Saved custom command '{command.name}' -> {command.action}")
        return ExecutionResult(success=True, message=message, data=command.to_dict())

    def delete(self, command_id: str) -> ExecutionResult:
        with self._lock:
            remaining = [cmd for cmd in self._commands if cmd.id != command_id]
            if len(remaining) == len(self._commands):
                return ExecutionResult(success=False, message=MESSAGES["not_found"], error="not_found")
            self._commands = remaining
            self._persist()
        return ExecutionResult(success=True, message=MESSAGES["deleted"])

    def get(self, command_id: str) -> Optional[CustomCommand]:
        with self._lock:
            return next((cmd for cmd in self._commands if cmd.id == command_id), None)

    def list(self) -> List[CustomCommand]:
        with self._lock:
            return list(self._commands)

    def match(self, transcript: Any) -> Optional[CustomCommand]:
        """First command whose trigger appears in the transcript."""
        text = normalize_transcript(transcript)
        if text is None:
            return None
        with self._lock:
            for command in self._commands:
                if any(trigger in text for trigger in command.triggers):
                    return command
        return None

    def export_json(self) -> str:
        return json.dumps([cmd.to_dict() for cmd in self.list()], indent=2, ensure_ascii=False)

    def export_html(self) -> str:
        """Export as a Netscape bookmark file, one entry per command."""
        added = int(time.time())
        lines = [
            '<!DOCTYPE NETSCAPE-Bookmark-file-1>',
            '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">',
            '<TITLE>Voice Commands</TITLE>',
            '<H1>Voice Commands</H1>',
            '<DL><p>',
        ]
        for command in self.list():
            href = html.escape(f"vidvoice://action/{command.action}", quote=True)
            lines.append(f'<DT><A HREF="{href}" ADD_DATE="{added}">{html.escape(command.name)}</A>')
        lines.append('</DL><p>')
        return "\n".join(lines) + "\n"
