"""Detection of speech-model repetition loops."""

import logging
import re
from collections import Counter

logger = logging.getLogger(__name__)

SENTENCE_SPLIT = re.compile(r"[.!?]\s*")


class HallucinationDetector:
    """Flags text that looks like a model stuck in a loop.

    Text is flagged when a sentence fragment longer than ``min_phrase_chars``
    occurs ``phrase_repeats`` times, or when a word longer than
    ``min_word_chars`` is repeated ``word_repeats`` times in a row.
    """

    def __init__(self,
                 min_text_chars: int = 20,
                 min_phrase_chars: int = 5,
                 phrase_repeats: int = 3,
                 min_word_chars: int = 2,
                 word_repeats: int = 5):
        self.min_text_chars = min_text_chars
        self.min_phrase_chars = min_phrase_chars
        self.phrase_repeats = phrase_repeats
        self.min_word_chars = min_word_chars
        self.word_repeats = word_repeats

    def check(self, text: str) -> bool:
        """Return True if ``text`` contains a repetition loop."""
        if not text or len(text) < self.min_text_chars:
            return False
        lowered = text.lower()
        return self._has_repeated_phrase(lowered) or self._has_repeated_word(lowered)

    def _has_repeated_phrase(self, text: str) -> bool:
        counts = Counter()
        for phrase in SENTENCE_SPLIT.split(text):
            normalized = phrase.strip()
            if len(normalized) <= self.min_phrase_chars:
                continue
            counts[normalized] += 1
            if counts[normalized] >= self.phrase_repeats:
                logger.warning(f"Hallucination detected: '{normalized[:60]}' repeated {counts[normalized]} times")
                return True
        return False

    def _has_repeated_word(self, text: str) -> bool:
        words = text.split()
        run = 1
        for previous, word in zip(words, words[1:]):
            if word == previous and len(word) > self.min_word_chars:
                run += 1
                if run >= self.word_repeats:
                    logger.warning(f"Word repetition detected: '{word}' repeated {run} times")
                    return True
            else:
                run = 1
        return False


def detect_hallucination(text: str) -> bool:
    """Check ``text`` with the default thresholds."""
    return HallucinationDetector().check(text)
