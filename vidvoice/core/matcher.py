#!/usr/bin/env python3
"""
VidVoice Command Matcher

Turns a transcribed utterance into a catalog intent. The intent table is
searched first (exact or contained phrase, first match in catalog order);
the legacy grouped commands are only consulted when that fails, and are
accepted on a containment score above a fixed threshold.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from vidvoice.data.command_catalog import Command, CommandCatalog, DEFAULT_LANGUAGE
from vidvoice.utils.text_utils import normalize_transcript

LEGACY_SCORE_THRESHOLD = 0.5


@dataclass(frozen=True)
class MatchedCommand:
    """Result of matching a transcript against the catalog."""
    intent: str
    action: Optional[str]
    slot: Any
    usage_count: int
    utterance: str
    match_pass: str  # "intent" or "legacy"
    score: float
    transcript: str

    @classmethod
    def from_command(cls, command: Command, utterance: str, match_pass: str,
                     score: float, transcript: str) -> "MatchedCommand":
        return cls(
            intent=command.intent,
            action=command.action if match_pass == "legacy" else None,
            slot=command.slot if match_pass == "legacy" else None,
            usage_count=command.usage_count if match_pass == "legacy" else 1,
            utterance=utterance,
            match_pass=match_pass,
            score=score,
            transcript=transcript,
        )


class CommandMatcher:
    """Two-pass matcher over an immutable command catalog."""

    def __init__(self, catalog: CommandCatalog, logger: logging.Logger,
                 default_language: str = DEFAULT_LANGUAGE,
                 threshold: float = LEGACY_SCORE_THRESHOLD):
        self.catalog = catalog
        self.logger = logger
        self.default_language = default_language
        self.threshold = threshold

        # Statistics
        self.matches_made = 0
        self.legacy_matches = 0
        self.misses = 0

    def match(self, transcript: Any, language: str) -> Optional[MatchedCommand]:
        """Return the command a transcript asks for, or None."""
        text = normalize_transcript(transcript)
        if text is None:
            return None

        result = self._match_intents(text, language)
        if result is None:
            result = self._match_legacy(text, language)

        if result is None:
            self.misses += 1
            self.logger.debug(f"No matching command found for: '{text}'")
        else:
            self.matches_made += 1
            if result.match_pass == "legacy":
                self.legacy_matches += 1
            self.logger.debug(
                f"Matched '{text}' -> {result.intent} via {result.match_pass} "
                f"('{result.utterance}', score {result.score:.2f})"
            )
        return result

    def _match_intents(self, text: str, language: str) -> Optional[MatchedCommand]:
        for command in self.catalog.intents:
            utterances = command.utterances_for(language, self.default_language)
            if not utterances:
                continue
            for utterance in utterances:
                if text == utterance or utterance in text:
                    return MatchedCommand.from_command(command, utterance, "intent", 1.0, text)
        return None

    def _match_legacy(self, text: str, language: str) -> Optional[MatchedCommand]:
        best: Optional[MatchedCommand] = None
        best_score = 0.0

        for command in self.catalog.commands:
            utterances = command.utterances_for(language, self.default_language)
            if not utterances:
                continue
            for utterance in utterances:
                if text == utterance:
                    return MatchedCommand.from_command(command, utterance, "legacy", 1.0, text)

                if utterance in text:
                    score = len(utterance) / len(text)
                    if score > best_score:
                        best_score = score
                        best = MatchedCommand.from_command(command, utterance, "legacy", score, text)

        # Reject weak partial matches such as a short filler word in a long sentence
        return best if best_score > self.threshold else None

    def get_statistics(self) -> Dict[str, Any]:
        """Get matching statistics."""
        total = self.matches_made + self.misses
        return {
            "matches_made": self.matches_made,
            "legacy_matches": self.legacy_matches,
            "misses": self.misses,
            "match_rate": self.matches_made / max(1, total),
        }
