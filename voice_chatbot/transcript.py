#!/usr/bin/env python3
"""
Transcript resolution: pick the recognizer alternative to act on.

``resolve`` is a pure function. It never raises for recognizer data and
returns ``None`` when nothing usable was said.
"""

import re
from typing import Iterable, List, Optional, Sequence

from .models import RecognitionAlternative, RecognitionEvent, ResolvedTranscript

DEFAULT_THRESHOLD = 0.8
AMBIGUOUS_SEPARATOR = " OR "

# Punctuation stripped from transcripts before they are used
STRIPPED_PUNCTUATION = ".,/#!$%^&*;:{}=-_`~()"
_PUNCT_REGEX = re.compile("[" + re.escape(STRIPPED_PUNCTUATION) + "]")
_WHITESPACE_REGEX = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Strip punctuation, collapse whitespace, trim and capitalize the first character.

    Only the first character is upper-cased; the rest keeps its case.

    >>> normalize("  hello   world!!")
    'Hello world'
    """
    text = _PUNCT_REGEX.sub("", text)
    text = _WHITESPACE_REGEX.sub(" ", text).strip()
    if not text:
        return ""
    return text[0].upper() + text[1:]


def best_alternative(alternatives: Iterable[RecognitionAlternative]) -> Optional[RecognitionAlternative]:
    """Highest-confidence alternative; on a tie the first one seen wins."""
    best = None
    for alternative in alternatives:
        if best is None or alternative.confidence > best.confidence:
            best = alternative
    return best


def _resolve_alternatives(alternatives: Sequence[RecognitionAlternative],
                          threshold: float) -> Optional[ResolvedTranscript]:
    best = best_alternative(alternatives)
    if best is None:
        return None

    if best.confidence >= threshold:
        text = normalize(best.transcript)
        if not text:
            return None
        return ResolvedTranscript(text=text, ambiguous=False, candidates=(text,))

    candidates = [normalize(alt.transcript) for alt in alternatives]
    candidates = [c for c in candidates if c]
    if not candidates:
        return None
    return ResolvedTranscript(
        text=AMBIGUOUS_SEPARATOR.join(candidates),
        ambiguous=True,
        candidates=tuple(candidates),
    )


def resolve(event: RecognitionEvent, threshold: float = DEFAULT_THRESHOLD) -> Optional[ResolvedTranscript]:
    """Resolve the final results of ``event`` into a single transcript.

    Each final result at or after ``event.start_index`` contributes either its
    best alternative (confidence >= threshold) or all of its alternatives
    joined with " OR ". Several final results are joined with a space and the
    whole transcript is ambiguous if any part of it is. Non-final results are
    ignored.
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")

    parts: List[ResolvedTranscript] = []
    for result in event.new_results:
        if not result.is_final:
            continue
        part = _resolve_alternatives(result.alternatives, threshold)
        if part is not None:
            parts.append(part)

    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]

    candidates: List[str] = []
    for part in parts:
        candidates.extend(part.candidates)
    return ResolvedTranscript(
        text=" ".join(part.text for part in parts),
        ambiguous=any(part.ambiguous for part in parts),
        candidates=tuple(candidates),
    )


def interim_text(event: RecognitionEvent) -> str:
    """Best-guess text of the non-final results, for live feedback only."""
    words = []
    for result in event.new_results:
        if result.is_final:
            continue
        best = best_alternative(result.alternatives)
        if best is not None and best.transcript.strip():
            words.append(best.transcript.strip())
    return " ".join(words)
