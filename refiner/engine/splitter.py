"""Phrase splitter -- breaks one instruction into candidate operation phrases.

Several splitting strategies run over the same text and the one producing
the most non-empty parts wins (ties go to the earlier strategy):

    conjunction    "add a hat and a cigar"          -> ["add a hat", "a cigar"]
    comma_verb     "make it red, add a hat"         -> ["make it red", "add a hat"]
    verb_spans     "add a hat, add a cigar, and ..." -> one span per leading verb
    whole          anything else                    -> [text]

Afterwards each part is cleaned and bare noun phrases inherit the action
verb of the phrase before them, so "add X and Y" becomes "add X" + "add Y".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from refiner.engine.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)

# Verbs that can open a new clause
_CLAUSE_VERBS = ("add", "change", "make", "turn", "give", "put", "place", "remove", "delete", "set")
_CLAUSE_VERB_ALT = "|".join(_CLAUSE_VERBS)

_CONJUNCTION_RE = re.compile(r"(?:\s*,)?\s+(?:and|plus|also|then)\s+|\s*,?\s*&\s*", re.IGNORECASE)
_COMMA_VERB_RE = re.compile(rf",\s*(?=(?:{_CLAUSE_VERB_ALT})\b)", re.IGNORECASE)
_VERB_SPAN_RE = re.compile(
    rf"\b(?:{_CLAUSE_VERB_ALT})\b.+?(?=\s*,|\s+(?:and|plus|also|then)\b|\s*&|$)",
    re.IGNORECASE,
)
_LEADING_FILLER_RE = re.compile(r"^(?:and|also|plus|then|a|an|the)\s+", re.IGNORECASE)
_EDGE_PUNCT = " \t\n,.;:!"

# Words that show a part is a clause of its own rather than a bare noun phrase
_NON_NOUN_MARKERS = frozenset(
    {"is", "are", "be", "should", "would", "could", "will", "can", "must", "was",
     "behind", "background", "theme"}
)
_BARE_NOUN_RE = re.compile(r"^[a-z][a-z0-9\s'-]*$", re.IGNORECASE)
_MAX_BARE_NOUN_WORDS = 4


@dataclass(frozen=True)
class SplitPhrase:
    text: str  # Cleaned phrase, with any inherited verb prepended
    source: str  # Raw part as produced by the winning strategy
    inherited_verb: str | None = None


@lru_cache(maxsize=8)
def _action_re(verbs: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(r"\b(" + "|".join(map(re.escape, verbs)) + r")\b", re.IGNORECASE)


def _split_conjunction(text: str) -> list[str]:
    return _CONJUNCTION_RE.split(text)


def _split_comma_verb(text: str) -> list[str]:
    return _COMMA_VERB_RE.split(text)


def _split_verb_spans(text: str) -> list[str]:
    return _VERB_SPAN_RE.findall(text)


def _split_whole(text: str) -> list[str]:
    return [text]


STRATEGIES = (
    ("conjunction", _split_conjunction),
    ("comma_verb", _split_comma_verb),
    ("verb_spans", _split_verb_spans),
    ("whole", _split_whole),
)


def choose_split(text: str) -> tuple[str, list[str]]:
    """Run every strategy and return ``(name, parts)`` for the one with the most parts."""
    best_name, best_parts = "whole", [text.strip()]
    best_count = 0
    for name, fn in STRATEGIES:
        parts = [p.strip(_EDGE_PUNCT) for p in fn(text)]
        parts = [p for p in parts if p]
        if len(parts) > best_count:
            best_name, best_parts, best_count = name, parts, len(parts)
    return best_name, best_parts


def clean_phrase(part: str) -> str:
    """Strip edge punctuation and leading conjunctions/articles."""
    cleaned = part.strip(_EDGE_PUNCT)
    while True:
        stripped = _LEADING_FILLER_RE.sub("", cleaned, count=1)
        if stripped == cleaned:
            return cleaned
        cleaned = stripped.strip(_EDGE_PUNCT)


def looks_like_bare_noun(phrase: str) -> bool:
    if not phrase or not _BARE_NOUN_RE.match(phrase):
        return False
    words = phrase.lower().split()
    if len(words) > _MAX_BARE_NOUN_WORDS:
        return False
    return not any(w in _NON_NOUN_MARKERS for w in words)


def _is_listed_object(piece: str, vocab: Vocabulary) -> bool:
    if not looks_like_bare_noun(piece):
        return False
    lower = piece.lower()
    return any(re.search(rf"\b{re.escape(word)}\b", lower) for word in vocab.objects)


def expand_noun_lists(parts: list[str], vocab: Vocabulary) -> list[str]:
    """Break "add sunglasses, a hat" into one part per listed object.

    A part is only broken up when every piece after the first comma is a
    bare noun phrase naming a known object.
    """
    expanded: list[str] = []
    for part in parts:
        pieces = [p.strip(_EDGE_PUNCT) for p in part.split(",")]
        if len(pieces) > 1 and all(_is_listed_object(clean_phrase(p), vocab) for p in pieces[1:]):
            expanded.extend(p for p in pieces if p)
        else:
            expanded.append(part)
    return expanded


def split_phrases(text: str, vocab: Vocabulary | None = None) -> list[SplitPhrase]:
    """Split *text* into phrases, applying action-word inheritance."""
    vocab = vocab or get_vocabulary()
    action_re = _action_re(vocab.action_verbs)

    strategy, parts = choose_split(text)
    parts = expand_noun_lists(parts, vocab)
    logger.debug("Split %r into %d part(s) via %s", text, len(parts), strategy)

    phrases: list[SplitPhrase] = []
    last_verb: str | None = None
    for part in parts:
        phrase = clean_phrase(part)
        inherited = None
        match = action_re.search(phrase)
        if match is None and last_verb and looks_like_bare_noun(phrase):
            inherited = last_verb
            logger.debug("Inherited action %r for %r", last_verb, phrase)
            phrase = f"{last_verb} {phrase}"
        elif match is not None:
            last_verb = match.group(1).lower()
        phrases.append(SplitPhrase(text=phrase, source=part, inherited_verb=inherited))
    return phrases


def split_instruction(text: str, vocab: Vocabulary | None = None) -> list[str]:
    return [p.text for p in split_phrases(text, vocab)]
