"""Prompt construction for the speech model.

Whisper only looks at the last 224 tokens of its prompt; we budget in
characters to stay well inside that.
"""

from typing import Iterable, Optional

from ..models.dictionary import DictionaryEntry
from .hallucination import HallucinationDetector

PROMPT_BUDGET_CHARS = 224
TERM_SEPARATOR = ", "


def build_vocabulary_prompt(entries: Iterable[DictionaryEntry],
                            budget: int = PROMPT_BUDGET_CHARS) -> Optional[str]:
    """Join dictionary terms by descending priority without exceeding ``budget``.

    Terms are never cut: the first term that would overflow the budget ends
    the prompt. Returns None for an empty dictionary.
    """
    ordered = sorted(entries, key=lambda entry: entry.priority, reverse=True)
    if not ordered:
        return None

    terms = []
    length = 0
    for entry in ordered:
        term = entry.term
        added = len(term) if not terms else len(TERM_SEPARATOR) + len(term)
        if length + added > budget:
            break
        terms.append(term)
        length += added
    return TERM_SEPARATOR.join(terms)


def fit_whole_terms(vocabulary_prompt: str, room: int) -> str:
    """Longest prefix of ``vocabulary_prompt`` that fits in ``room`` and ends on a term boundary."""
    if len(vocabulary_prompt) <= room:
        return vocabulary_prompt
    fitted = ""
    for term in vocabulary_prompt.split(TERM_SEPARATOR):
        candidate = term if not fitted else f"{fitted}{TERM_SEPARATOR}{term}"
        if len(candidate) > room:
            break
        fitted = candidate
    return fitted


def build_context_prompt(transcript: str,
                         vocabulary_prompt: Optional[str],
                         detector: HallucinationDetector,
                         budget: int = PROMPT_BUDGET_CHARS,
                         tail_chars: int = 180,
                         scan_chars: int = 500,
                         min_vocabulary_room: int = 30) -> str:
    """Prompt for one flush: recent transcript tail, then as much vocabulary as fits.

    The tail is left out when the recent transcript looks like a repetition
    loop so a hallucination is never fed back to the model.
    """
    context = ""
    if transcript and not detector.check(transcript[-scan_chars:]):
        context = transcript[-tail_chars:]

    if vocabulary_prompt:
        space_left = budget - len(context)
        if space_left > min_vocabulary_room:
            separator = ". " if context else ""
            terms = fit_whole_terms(vocabulary_prompt, space_left - len(separator))
            if terms:
                context = f"{context}{separator}{terms}"

    if len(context) > budget:
        context = context[-budget:]
    return context
