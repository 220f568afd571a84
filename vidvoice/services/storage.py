#!/usr/bin/env python3
"""
VidVoice Storage

String-keyed, string-valued persistence with heuristic corruption
scrubbing. Callers JSON-encode their values; anything that does not look
like a JSON object or array on the way out is treated as corrupted and
deleted instead of being handed back.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

CORRUPTION_MARKERS = (
    "object Object",
    "undefined",
    "NaN",
    "Voice commands import error",
    "source.uri should not be an empty string",
)

_CONTROL_CHARS = re.compile(r'[\u0000-\u001F\u007F-\u009F]')


def looks_corrupted(value: Optional[str]) -> bool:
    """Heuristically decide whether a stored string is unusable."""
    if not value or not isinstance(value, str):
        return False

    cleaned = value.strip()
    if not cleaned:
        return False
    if any(marker in cleaned for marker in CORRUPTION_MARKERS):
        return True
    if cleaned[0].isalpha():
        return True
    if "{" not in cleaned and "[" not in cleaned and len(cleaned) > 10:
        return True

    if (cleaned.startswith("{") and cleaned.endswith("}")) or \
            (cleaned.startswith("[") and cleaned.endswith("]")):
        try:
            json.loads(cleaned)
        except json.JSONDecodeError:
            return True
    return False


def safe_json_parse(data: Optional[str], fallback: Any = None) -> Any:
    """Parse a stored JSON object or array, returning ``fallback`` on any doubt."""
    if not data or not isinstance(data, str) or not data.strip():
        return fallback

    cleaned = data.strip().lstrip('﻿')
    cleaned = _CONTROL_CHARS.sub('', cleaned)
    cleaned = cleaned.replace('\\n', '').replace('\\r', '').replace('\\t', '')

    if any(marker in cleaned for marker in CORRUPTION_MARKERS) or cleaned[:1].isalpha():
        return fallback
    if "{" not in cleaned and "[" not in cleaned:
        return fallback

    if (cleaned.startswith("{") and cleaned.endswith("}")) or \
            (cleaned.startswith("[") and cleaned.endswith("]")):
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            return fallback
    return fallback


class KeyValueStore:
    """Base key-value store; subclasses implement the raw accessors."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("vidvoice.storage")

    # Raw accessors
    def _get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _set(self, key: str, value: str):
        raise NotImplementedError

    def _remove(self, key: str):
        raise NotImplementedError

    def _clear(self):
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def get_item(self, key: str) -> Optional[str]:
        """Get a value, deleting it instead when it looks corrupted."""
        if not key or not key.strip():
            self.logger.error("Invalid storage key")
            return None

        key = key.strip()
        try:
            data = self._get(key)
        except Exception as e:
            self.logger.error(f"Failed to get item {key}: {e}")
            return None

        if data is not None and looks_corrupted(data):
            self.logger.info(f"Clearing corrupted data for key: {key}")
            self.remove_item(key)
            return None
        return data

    def set_item(self, key: str, value: str):
        if not key or not key.strip():
            self.logger.error("Invalid storage key")
            return
        if value is None:
            self.logger.error("Invalid storage value")
            return
        try:
            self._set(key.strip(), value)
        except Exception as e:
            self.logger.error(f"Failed to set item {key}: {e}")

    def remove_item(self, key: str):
        if not key or not key.strip():
            self.logger.error("Invalid storage key")
            return
        try:
            self._remove(key.strip())
        except Exception as e:
            self.logger.error(f"Failed to remove item {key}: {e}")

    def clear(self):
        try:
            self._clear()
        except Exception as e:
            self.logger.error(f"Failed to clear storage: {e}")

    def get_json(self, key: str, fallback: Any = None) -> Any:
        return safe_json_parse(self.get_item(key), fallback)

    def set_json(self, key: str, value: Any):
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    def clear_corrupted_data(self) -> List[str]:
        """Delete every key whose value looks corrupted; return the deleted keys."""
        corrupted = []
        for key in self.keys():
            try:
                data = self._get(key)
            except Exception as e:
                self.logger.error(f"Error checking key {key}: {e}")
                corrupted.append(key)
                continue
            if data is not None and looks_corrupted(data):
                corrupted.append(key)

        if corrupted:
            self.logger.info(f"Clearing corrupted storage keys: {corrupted}")
            for key in corrupted:
                self.remove_item(key)
        return corrupted


class MemoryStore(KeyValueStore):
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self._data: Dict[str, str] = dict(initial or {})

    def _get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _set(self, key: str, value: str):
        self._data[key] = value

    def _remove(self, key: str):
        self._data.pop(key, None)

    def _clear(self):
        self._data.clear()

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """Store backed by a single JSON file mapping keys to string values."""

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.path = Path(path)
        self._data: Dict[str, str] = {}
        self._load()

    def _load(self):
        try:
            if self.path.exists():
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._data = {str(k): v for k, v in data.items() if isinstance(v, str)}
                else:
                    self.logger.warning(f"Ignoring store file {self.path}: not a JSON object")
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to load store file {self.path}: {e}")

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)

    def _get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _set(self, key: str, value: str):
        self._data[key] = value
        self._save()

    def _remove(self, key: str):
        if key in self._data:
            del self._data[key]
            self._save()

    def _clear(self):
        self._data.clear()
        self._save()

    def keys(self) -> List[str]:
        return list(self._data.keys())
