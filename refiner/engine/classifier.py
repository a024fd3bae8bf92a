"""Operation classifier -- maps one phrase to a typed edit operation.

Classification is an ordered rule list of ``(name, predicate, extractor)``
triples. Rules are tried in order; the first rule whose predicate matches and
whose extractor produces an operation wins. Nothing matching means
``GeneralEdit``: the strict classifier never returns None.

``classify_phrase_loose`` is the recovery matcher used for phrases the strict
rules could not make sense of. It works on keyword containment instead of
anchored patterns and returns None when nothing actionable is found.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Callable

from refiner.engine.background_text import (
    extract_background_description,
    is_background_removal,
    mentions_background,
)
from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.models.operations import (
    Addition,
    BackgroundChange,
    BackgroundRemoval,
    ColorChange,
    GeneralEdit,
    Operation,
    Removal,
    Specificity,
    TextureAddition,
)

logger = logging.getLogger(__name__)

_I = re.IGNORECASE
_DETERMINERS = frozenset({"the", "his", "her", "its", "their", "a", "an", "my", "some", "your"})
_DETERMINER_RE = re.compile(r"^(?:the|his|her|its|their|a|an|my|some|your)\s+", _I)
_WORD_RE = re.compile(r"[a-z][a-z'-]*", _I)
_PRONOUN = r"(?:him|her|it|them|the\s+\w+)"

# Words that carry no edit content on their own
_FILLER_WORDS = frozenset(
    {"a", "an", "the", "and", "or", "also", "plus", "then", "it", "him", "her", "them",
     "his", "its", "their", "my", "to", "on", "in", "of", "some", "any", "please", "with",
     "into", "onto", "actually", "just"}
)

Predicate = Callable[[str, Vocabulary], bool]
Extractor = Callable[[str, Vocabulary], "Operation | None"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def strip_determiners(text: str) -> str:
    text = text.strip(" .,!;:").lower()
    previous = None
    while previous != text:
        previous = text
        text = _DETERMINER_RE.sub("", text).strip()
    return "" if text in _DETERMINERS else text


def head_noun(text: str, vocab: Vocabulary) -> str:
    """Closed-vocabulary word that appears first in *text*, else the last word."""
    lower = text.lower()
    best: tuple[int, str] | None = None
    for word in (*vocab.objects, *vocab.edit_targets):
        match = re.search(rf"\b{re.escape(word)}\b", lower)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), word)
    if best is not None:
        return best[1]
    words = _WORD_RE.findall(lower)
    return words[-1] if words else ""


def _has_keyword(text: str, keywords: tuple[str, ...]) -> str | None:
    """First keyword found as a word or inflection ("bloody", "scarred"; not "scarf")."""
    lower = text.lower()
    for kw in keywords:
        stem = re.escape(kw)
        if re.search(rf"\b{stem}(?:{re.escape(kw[-1])})?(?:s|es|y|ed|ing)?\b", lower):
            return kw
    return None


def assess_specificity(text: str, location: str | None, vocab: Vocabulary) -> Specificity:
    if _has_keyword(text, vocab.very_high):
        return Specificity.VERY_HIGH
    if _has_keyword(text, vocab.high):
        return Specificity.HIGH
    if location:
        return Specificity.MEDIUM
    return Specificity.LOW


def content_words(phrase: str, vocab: Vocabulary) -> list[str]:
    verbs = set(vocab.action_verbs)
    return [w for w in _WORD_RE.findall(phrase.lower()) if w not in _FILLER_WORDS and w not in verbs]


def _color_alt(colors: tuple[str, ...]) -> str:
    return "|".join(map(re.escape, colors))


# ---------------------------------------------------------------------------
# Strict rules
# ---------------------------------------------------------------------------


def _is_removal_of_background(phrase: str, vocab: Vocabulary) -> bool:
    return is_background_removal(phrase)


def _extract_background_removal(phrase: str, vocab: Vocabulary) -> Operation | None:
    return BackgroundRemoval()


def _is_background_mention(phrase: str, vocab: Vocabulary) -> bool:
    return mentions_background(phrase)


def _extract_background_change(phrase: str, vocab: Vocabulary) -> Operation | None:
    return BackgroundChange(description=extract_background_description(phrase, vocab))


@lru_cache(maxsize=8)
def _color_patterns_for(color_words: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    colors = _color_alt(color_words)
    return (
        re.compile(
            r"\b(?:change|make|turn|set)\s+(?P<target>.+?)(?:'s)?\s+colou?r\s+(?:to|into)\s+(?P<color>\w+)", _I
        ),
        re.compile(
            r"\b(?:change|make|turn|set)\s+(?:the\s+)?colou?r\s+of\s+(?P<target>.+?)\s+(?:to|into)\s+(?P<color>\w+)",
            _I,
        ),
        re.compile(rf"\b(?:change|turn)\s+(?P<target>.+?)\s+(?:to|into)\s+(?P<color>{colors})\b", _I),
        re.compile(
            rf"\b(?:make|turn|paint|colou?r|dye)\s+(?P<target>.+?)\s+(?P<color>{colors})(?:\s+colou?r(?:ed)?)?$", _I
        ),
        re.compile(rf"\bgive\s+{_PRONOUN}\s+(?P<color>{colors})\s+(?P<target>.+)$", _I),
    )


def _color_patterns(vocab: Vocabulary) -> tuple[re.Pattern[str], ...]:
    return _color_patterns_for(vocab.colors)


def _is_color_change(phrase: str, vocab: Vocabulary) -> bool:
    return any(p.search(phrase) for p in _color_patterns(vocab))


def _extract_color_change(phrase: str, vocab: Vocabulary) -> Operation | None:
    for pattern in _color_patterns(vocab):
        match = pattern.search(phrase)
        if not match:
            continue
        target = strip_determiners(match.group("target"))
        target = re.sub(r"\s+colou?r$", "", target)
        return ColorChange(
            target=head_noun(target, vocab) if target else "",
            new_color=match.group("color").lower(),
        )
    return None


_ADDITION_PATTERNS = [
    re.compile(
        r"\b(?:add|put|place|attach)\s+(?:a\s+|an\s+|some\s+|the\s+)?(?P<item>.+?)"
        r"(?:\s+(?:to|on|onto|in|into|around|over|near|at)\s+(?P<loc>.+))?$",
        _I,
    ),
    re.compile(
        rf"\bgive\s+{_PRONOUN}\s+(?:a\s+|an\s+|some\s+)?(?P<item>.+?)"
        r"(?:\s+(?:to|on|in|around|near)\s+(?P<loc>.+))?$",
        _I,
    ),
]


def _is_addition(phrase: str, vocab: Vocabulary) -> bool:
    return any(p.search(phrase) for p in _ADDITION_PATTERNS)


def _extract_addition(phrase: str, vocab: Vocabulary) -> Operation | None:
    for pattern in _ADDITION_PATTERNS:
        match = pattern.search(phrase)
        if not match:
            continue
        item_text = strip_determiners(match.group("item"))
        location = strip_determiners(match.group("loc")) if match.group("loc") else None
        return Addition(
            item=head_noun(item_text, vocab) if item_text else "",
            location=location or None,
            specificity=assess_specificity(phrase, location, vocab),
        )
    return None


_REMOVAL_RE = re.compile(r"\b(?:remove|delete|erase|take\s+off|get\s+rid\s+of)\b\s*(?P<target>.*)$", _I)
_MODIFY_VERB_RE = re.compile(r"\b(?:make|change|turn|set|move|resize)\b", _I)


def _is_removal(phrase: str, vocab: Vocabulary) -> bool:
    return _REMOVAL_RE.search(phrase) is not None


def _extract_removal(phrase: str, vocab: Vocabulary) -> Operation | None:
    match = _REMOVAL_RE.search(phrase)
    target = strip_determiners(match.group("target")) if match else ""
    return Removal(target=head_noun(target, vocab) if target else "")


def _is_texture(phrase: str, vocab: Vocabulary) -> bool:
    return _has_keyword(phrase, vocab.textures) is not None


def texture_target(phrase: str, texture: str, vocab: Vocabulary) -> str | None:
    lower = phrase.lower()
    near = re.search(
        rf"\b{re.escape(texture)}\w*\s+(?:to|on|onto|over)\s+(?:the\s+|his\s+|her\s+|its\s+|their\s+)?(\w+)",
        lower,
    )
    if near:
        return near.group(1)
    return _has_keyword(lower, vocab.texture_targets)


def _extract_texture(phrase: str, vocab: Vocabulary) -> Operation | None:
    texture = _has_keyword(phrase, vocab.textures)
    if texture is None:
        return None
    return TextureAddition(texture=texture, target=texture_target(phrase, texture, vocab))


RULES: list[tuple[str, Predicate, Extractor]] = [
    ("background_removal", _is_removal_of_background, _extract_background_removal),
    ("background_change", _is_background_mention, _extract_background_change),
    ("color_change", _is_color_change, _extract_color_change),
    ("addition", _is_addition, _extract_addition),
    ("removal", _is_removal, _extract_removal),
    ("texture_addition", _is_texture, _extract_texture),
]


def classify_with_rule(phrase: str, vocab: Vocabulary | None = None) -> tuple[str, Operation]:
    """Classify *phrase* and report which rule produced the operation."""
    vocab = vocab or get_vocabulary()
    text = phrase.strip()
    for name, predicate, extractor in RULES:
        if not predicate(text, vocab):
            continue
        op = extractor(text, vocab)
        if op is not None:
            op.phrase = text
            return name, op
    return "general_edit", GeneralEdit(raw_text=text, phrase=text)


def classify_phrase(phrase: str, vocab: Vocabulary | None = None) -> Operation:
    name, op = classify_with_rule(phrase, vocab)
    logger.debug("Classified %r as %s via %s", phrase, op.kind, name)
    return op


# ---------------------------------------------------------------------------
# Validation and loose recovery
# ---------------------------------------------------------------------------


def invalid_reason(phrase: str, op: Operation, vocab: Vocabulary | None = None) -> str | None:
    """Why a classified phrase is unusable, or None when it is fine."""
    vocab = vocab or get_vocabulary()
    if not phrase.strip():
        return "empty_phrase"
    if isinstance(op, (BackgroundChange, BackgroundRemoval)):
        return None
    if isinstance(op, (ColorChange, Removal)) and not op.target:
        return "missing_target"
    if isinstance(op, Addition) and not op.item:
        return "missing_target"
    if not content_words(phrase, vocab):
        return "no_content"
    return None


def classify_phrase_loose(phrase: str, vocab: Vocabulary | None = None) -> Operation | None:
    vocab = vocab or get_vocabulary()
    text = phrase.strip()
    lower = text.lower()
    if not lower:
        return None

    op: Operation | None = None
    if is_background_removal(lower):
        op = BackgroundRemoval()
    elif "background" in lower or "backdrop" in lower:
        op = BackgroundChange(description=extract_background_description(lower, vocab))
    else:
        color = next((c for c in vocab.colors if re.search(rf"\b{re.escape(c)}\b", lower)), None)
        noun = next(
            (w for w in (*vocab.objects, *vocab.edit_targets) if re.search(rf"\b{re.escape(w)}\b", lower)),
            None,
        )
        texture = _has_keyword(lower, vocab.textures)
        if color and noun:
            op = ColorChange(target=noun, new_color=color)
        elif texture:
            op = TextureAddition(texture=texture, target=texture_target(lower, texture, vocab))
        elif noun and not _MODIFY_VERB_RE.search(lower):
            op = Addition(item=noun, specificity=assess_specificity(lower, None, vocab))

    if op is not None:
        op.phrase = text
        logger.debug("Loose match for %r -> %s", text, op.kind)
    return op
