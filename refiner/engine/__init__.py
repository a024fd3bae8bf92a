"""Instruction interpretation engine."""

from refiner.engine.background_text import (
    extract_background_description,
    is_background_operation,
    is_background_removal,
)
from refiner.engine.classifier import classify_phrase, classify_phrase_loose
from refiner.engine.interpreter import InstructionInterpreter, parse_instruction
from refiner.engine.resolver import resolve_conflicts
from refiner.engine.splitter import split_instruction
from refiner.engine.strategy import select_strategy

__all__ = [
    "extract_background_description",
    "is_background_operation",
    "is_background_removal",
    "classify_phrase",
    "classify_phrase_loose",
    "InstructionInterpreter",
    "parse_instruction",
    "resolve_conflicts",
    "split_instruction",
    "select_strategy",
]
