"""Background phrase detection and description extraction.

Extraction is two-stage: pull a raw candidate out of the instruction with a
prioritized pattern list, then enrich it into a provider-ready description
(synonym table, colour rules, generic wrap). Both stages are deterministic.
"""

from __future__ import annotations

import logging
import re

from refiner.engine.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "a scenic background"
_WINTER = "a winter scene with gentle snowfall in the background"

_I = re.IGNORECASE
_PRONOUN = r"(?:him|her|it|them|the\s+\w+)"

# First pattern whose capture passes the validity filter wins
_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("make_background", re.compile(r"\b(?:make|turn)\s+(?:the\s+)?background\s+(?:into\s+|to\s+)?(.+)", _I)),
    ("change_background", re.compile(r"\b(?:change|modify|alter|set)\s+(?:the\s+)?background\s+(?:to\s+|into\s+|as\s+)?(.+)", _I)),
    ("give_background", re.compile(rf"\b(?:give|provide)\s+{_PRONOUN}\s+(?:a\s+|an\s+)?(.+?)\s+background", _I)),
    ("set_background", re.compile(r"\b(?:set|create|establish|apply)\s+(?:a\s+|an\s+|the\s+)?(.+?)\s+background", _I)),
    ("behind", re.compile(rf"(.+?)\s+(?:falling\s+|dropping\s+)?behind\s+{_PRONOUN}", _I)),
    ("in_the_background", re.compile(r"\b(?:put|place|add)\s+(.+?)\s+in\s+the\s+background", _I)),
    ("add_background", re.compile(r"\b(?:add|put|place)\s+(?:a\s+|an\s+|some\s+)?(.+?)\s+(?:as\s+)?(?:a\s+)?background", _I)),
    ("use_background", re.compile(r"\b(?:use|have|want)\s+(?:a\s+|an\s+|some\s+)?(.+?)\s+background", _I)),
    ("background_of", re.compile(r"\bbackground\s+(?:of|with|featuring|showing)\s+(.+)", _I)),
    ("with_in_background", re.compile(r"\bwith\s+(.+?)\s+in\s+the\s+background", _I)),
    ("against", re.compile(r"\bagainst\s+(?:a\s+|an\s+)?(.+?)\s+background", _I)),
    ("on_background", re.compile(r"\b(?:on|over)\s+(?:a\s+|an\s+)?(.+?)\s+background", _I)),
    ("theme", re.compile(r"(?:^|\s)(?:a\s+|an\s+)?(\w+(?:\s+\w+)?)\s+theme\b", _I)),
    ("show_background", re.compile(r"\b(?:show|display|render)\s+(.+?)\s+(?:in\s+the\s+)?background", _I)),
    ("trailing_background", re.compile(r"(.+?)\s+(?:in\s+the\s+)?(?:background|behind)\b", _I)),
    ("background_is", re.compile(r"\bbackground\s+(?:should\s+be\s+|is\s+|becomes\s+)?(.+)", _I)),
]

# Consulted when no pattern yields a usable candidate
_SPECIAL_CASES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bsnow\s*fall(?:ing)?\b|\bsnow\s+falling\b|\bsnowing\b", _I), _WINTER),
    (re.compile(r"\b(?:snowy|winter)\s+background\b", _I), _WINTER),
    (re.compile(r"\brain(?:fall|ing)?\b", _I), "a rainy scene with raindrops falling in the background"),
]

_REMOVAL_RE = re.compile(
    r"\b(?:remove|delete|clear|erase)\s+(?:the\s+|a\s+|any\s+)?background\b"
    r"|\bno\s+background\b"
    r"|\btransparent\s+background\s+only\b"
    r"|\bwithout\s+(?:a\s+|the\s+|any\s+)?background\b",
    _I,
)
_BACKGROUND_VERB_RE = re.compile(r"\b(?:change|add|set|make)\b", _I)
_INDIRECT_RE = re.compile(rf"\bbehind\s+{_PRONOUN}\b", _I)
_THEME_RE = re.compile(r"\b\w+\s+theme\b", _I)

_LEAD_STRIP_RE = re.compile(
    r"^(?:a|an|the|with|of|featuring|showing|having|some|any|to|into|add|put|place)\s+", _I
)
_TRAIL_STRIP_RE = re.compile(r"\s+(?:background|behind|falling|dropping|theme)$", _I)
_CLAUSE_CUT_RE = re.compile(
    r",|;|\s+(?:and|then|also|plus)\s+(?=(?:add|change|make|turn|give|put|place|remove|delete|set)\b)", _I
)
_SCENE_WORDS_RE = re.compile(r"\b(?:scene|landscape|view)\b", _I)


def is_background_operation(text: str) -> bool:
    """Narrow check: mentions "background" and one of change/add/set/make."""
    lower = text.lower()
    return "background" in lower and _BACKGROUND_VERB_RE.search(lower) is not None


def is_background_removal(text: str) -> bool:
    return _REMOVAL_RE.search(text) is not None


def mentions_background(text: str) -> bool:
    """Broader check used by the classifier: direct, indirect or thematic phrasing."""
    return (
        "background" in text.lower()
        or _INDIRECT_RE.search(text) is not None
        or _THEME_RE.search(text) is not None
    )


def normalize_candidate(candidate: str) -> str:
    text = _CLAUSE_CUT_RE.split(candidate, maxsplit=1)[0]
    text = text.strip(" .,!;:").lower()
    previous = None
    while previous != text:
        previous = text
        text = _LEAD_STRIP_RE.sub("", text).strip()
        text = _TRAIL_STRIP_RE.sub("", text).strip()
    return text


def is_valid_candidate(candidate: str, vocab: Vocabulary | None = None) -> bool:
    vocab = vocab or get_vocabulary()
    text = candidate.strip().lower()
    if len(text) < 2 or text in vocab.background_stopwords:
        return False
    colors = "|".join(map(re.escape, vocab.colors))
    accessories = "|".join(map(re.escape, vocab.accessories))
    return re.fullmatch(rf"(?:(?:{colors})\s+)?(?:{accessories})", text) is None


def _synonym_for(text: str, vocab: Vocabulary) -> str | None:
    for entry in vocab.background_synonyms:
        if text in entry.keys:
            return entry.description
    for entry in vocab.background_synonyms:
        for key in entry.keys:
            if re.search(rf"\b{re.escape(key)}\b", text) or (len(text) >= 3 and text in key):
                return entry.description
    return None


def _color_in(text: str, vocab: Vocabulary) -> str | None:
    for color in vocab.colors:
        if re.search(rf"\b{re.escape(color)}\b", text):
            return color
    return None


def enhance_background_description(candidate: str, vocab: Vocabulary | None = None) -> str:
    """Turn a sparse candidate ("forest", "blue gradient") into a full description."""
    vocab = vocab or get_vocabulary()
    text = normalize_candidate(candidate)
    if not text:
        return DEFAULT_DESCRIPTION

    synonym = _synonym_for(text, vocab)
    if synonym:
        return synonym

    color = _color_in(text, vocab)
    if "gradient" in text:
        return f"a smooth {color} gradient background" if color else "a colorful gradient background"
    if color and "solid" in text:
        return f"a solid {color} background"
    if color and re.fullmatch(rf"{re.escape(color)}(?:\s+colou?r(?:ed)?)?", text):
        return f"a {color} background"

    if _SCENE_WORDS_RE.search(text):
        return f"a {text} background"
    return f"a {text} background scene"


def find_background_candidate(text: str, vocab: Vocabulary | None = None) -> tuple[str, str] | None:
    """Return ``(pattern_name, candidate)`` for the first valid match, else None."""
    vocab = vocab or get_vocabulary()
    for name, pattern in _PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        candidate = normalize_candidate(match.group(1))
        if is_valid_candidate(candidate, vocab):
            return name, candidate
        logger.debug("Background pattern %s rejected candidate %r", name, candidate)
    return None


def extract_background_description(text: str, vocab: Vocabulary | None = None) -> str:
    vocab = vocab or get_vocabulary()
    found = find_background_candidate(text, vocab)
    if found is not None:
        name, candidate = found
        description = enhance_background_description(candidate, vocab)
        logger.debug("Background %r via %s -> %r", candidate, name, description)
        return description

    for pattern, description in _SPECIAL_CASES:
        if pattern.search(text):
            return description

    logger.debug("No background description in %r, using default", text)
    return DEFAULT_DESCRIPTION
