#!/usr/bin/env python3
"""
VidVoice Command Catalog

Static tables of voice intents and legacy grouped commands, loaded once
from the packaged JSON resources into an immutable in-memory structure.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

DATA_DIR = Path(__file__).resolve().parent
INTENTS_FILE = DATA_DIR / "voice_intents.json"
COMMANDS_FILE = DATA_DIR / "voice_commands.json"

DEFAULT_LANGUAGE = "en"

logger = logging.getLogger("vidvoice.catalog")


@dataclass(frozen=True)
class Command:
    """Catalog entry mapping trigger utterances to an intent."""
    intent: str
    utterances: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    action: Optional[str] = None
    slot: Any = None
    usage_count: int = 1

    def utterances_for(self, language: str, default_language: str = DEFAULT_LANGUAGE) -> Optional[Tuple[str, ...]]:
        """Return the phrases for a language, falling back to the default one."""
        phrases = self.utterances.get(language)
        if phrases is None:
            phrases = self.utterances.get(default_language)
        return phrases

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "intent": self.intent,
            "utterances": {lang: list(phrases) for lang, phrases in self.utterances.items()},
        }
        if self.action is not None:
            data["action"] = self.action
        if self.slot is not None:
            data["slot"] = self.slot
        data["usage_count"] = self.usage_count
        return data


@dataclass(frozen=True)
class CommandCatalog:
    """Immutable snapshot of the intent table and the legacy command table."""
    intents: Tuple[Command, ...] = ()
    commands: Tuple[Command, ...] = ()

    def languages(self) -> List[str]:
        """Return every language code that has at least one utterance."""
        seen: List[str] = []
        for command in self.intents + self.commands:
            for lang in command.utterances:
                if lang not in seen:
                    seen.append(lang)
        return seen

    def find_intent(self, intent: str) -> Optional[Command]:
        for command in self.intents:
            if command.intent == intent:
                return command
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intents": [command.to_dict() for command in self.intents],
            "commands": [command.to_dict() for command in self.commands],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommandCatalog":
        """Build a catalog from a snapshot produced by ``to_dict``."""
        intents = _parse_entries(data.get("intents", []), source="intents")
        commands = _parse_entries(data.get("commands", []), source="commands")
        return cls(intents=intents, commands=commands)

    @classmethod
    def from_json(cls, text: str) -> "CommandCatalog":
        return cls.from_dict(json.loads(text))


def _normalize_utterances(raw: Any) -> Optional[Mapping[str, Tuple[str, ...]]]:
    if not isinstance(raw, dict):
        return None

    normalized: Dict[str, Tuple[str, ...]] = {}
    for lang, phrases in raw.items():
        if not isinstance(phrases, list):
            continue
        cleaned = tuple(
            phrase.lower().strip()
            for phrase in phrases
            if isinstance(phrase, str) and phrase.strip()
        )
        normalized[str(lang)] = cleaned
    return MappingProxyType(normalized)


def _parse_entries(entries: Any, source: str) -> Tuple[Command, ...]:
    """Turn raw JSON entries into commands, skipping malformed ones."""
    if not isinstance(entries, list):
        logger.warning(f"Catalog section '{source}' is not a list, ignoring it")
        return ()

    parsed: List[Command] = []
    seen_intents = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning(f"Skipping {source}[{index}]: not an object")
            continue

        intent = entry.get("intent")
        if not isinstance(intent, str) or not intent.strip():
            logger.warning(f"Skipping {source}[{index}]: missing intent")
            continue

        utterances = _normalize_utterances(entry.get("utterances"))
        if utterances is None:
            logger.warning(f"Skipping {source}[{index}] ({intent}): utterances must be an object")
            continue

        if source == "intents":
            if intent in seen_intents:
                logger.warning(f"Skipping duplicate intent '{intent}'")
                continue
            seen_intents.add(intent)

        usage_count = entry.get("usage_count", 1)
        if not isinstance(usage_count, int) or isinstance(usage_count, bool) or usage_count < 1:
            usage_count = 1

        action = entry.get("action")
        parsed.append(Command(
            intent=intent.strip(),
            utterances=utterances,
            action=action if isinstance(action, str) and action else None,
            slot=entry.get("slot"),
            usage_count=usage_count,
        ))

    return tuple(parsed)


def _read_json(path: Path) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"Voice data file not found: {path}")
    except json.JSONDecodeError as e:
        logger.error(f"Voice data file {path} is not valid JSON: {e}")
    return None


def load_catalog(intents_path: Optional[str] = None, commands_path: Optional[str] = None) -> CommandCatalog:
    """Load the intent table and the legacy command table from disk."""
    intents_data = _read_json(Path(intents_path) if intents_path else INTENTS_FILE)
    commands_data = _read_json(Path(commands_path) if commands_path else COMMANDS_FILE)

    intents = _parse_entries(intents_data if intents_data is not None else [], source="intents")

    legacy: Any = []
    if isinstance(commands_data, dict):
        legacy = commands_data.get("commands", [])
    commands = _parse_entries(legacy, source="commands")

    logger.info(f"Loaded {len(intents)} voice intents and {len(commands)} legacy commands")
    return CommandCatalog(intents=intents, commands=commands)


_catalog: Optional[CommandCatalog] = None
_catalog_lock = threading.Lock()


def get_catalog() -> CommandCatalog:
    """Return the packaged catalog, loading it on first use."""
    global _catalog
    with _catalog_lock:
        if _catalog is None:
            _catalog = load_catalog()
        return _catalog
