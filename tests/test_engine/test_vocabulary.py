"""Tests for the enrichment vocabulary and its override merge."""

from __future__ import annotations

import json
import logging

import pytest

from refiner.engine.background_text import extract_background_description
from refiner.engine.classifier import classify_phrase
from refiner.engine.vocabulary import load_vocabulary, merge_vocabulary
from refiner.models.operations import Addition, ColorChange, Specificity


@pytest.fixture
def override_file(tmp_path):
    path = tmp_path / "vocabulary.json"
    path.write_text(
        json.dumps(
            {
                "objects": ["lightsaber"],
                "colors": ["crimson"],
                "specificity": {"very_high": ["lightsaber"]},
                "background_synonyms": [
                    {"keys": ["castle"], "description": "a gothic castle background at dusk"}
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


class TestBuiltinCatalog:
    def test_loads(self, vocab):
        assert "sunglasses" in vocab.objects
        assert "red" in vocab.colors
        assert "blood" in vocab.very_high
        assert "hat" in vocab.object_templates
        assert vocab.background_synonyms[0].keys[0] == "snowfall"

    def test_cached(self):
        assert load_vocabulary() is load_vocabulary()


class TestMerge:
    def test_lists_extend_without_duplicates(self):
        merged = merge_vocabulary({"objects": ["hat"]}, {"objects": ["hat", "cap"]})
        assert merged["objects"] == ["hat", "cap"]

    def test_specificity_levels_extend(self):
        merged = merge_vocabulary(
            {"specificity": {"high": ["hat"]}},
            {"specificity": {"very_high": ["fang"], "high": ["crown"]}},
        )
        assert merged["specificity"]["high"] == ["hat", "crown"]
        assert merged["specificity"]["very_high"] == ["fang"]

    def test_override_synonyms_come_first(self):
        base = {"background_synonyms": [{"keys": ["forest"], "description": "base"}]}
        extra = {"background_synonyms": [{"keys": ["forest"], "description": "override"}]}
        merged = merge_vocabulary(base, extra)
        assert [s["description"] for s in merged["background_synonyms"]] == ["override", "base"]

    def test_templates_update(self):
        merged = merge_vocabulary(
            {"object_templates": {"hat": {"description": "old"}}},
            {"object_templates": {"hat": {"description": "new"}, "cap": {"description": "cap"}}},
        )
        assert merged["object_templates"]["hat"]["description"] == "new"
        assert "cap" in merged["object_templates"]

    def test_base_is_not_mutated(self):
        base = {"objects": ["hat"]}
        merge_vocabulary(base, {"objects": ["cap"]})
        assert base == {"objects": ["hat"]}


class TestOverrideFile:
    def test_override_feeds_classification(self, override_file):
        vocab = load_vocabulary(str(override_file))

        op = classify_phrase("add a lightsaber", vocab)
        assert isinstance(op, Addition)
        assert op.specificity == Specificity.VERY_HIGH

        op = classify_phrase("make the shirt crimson", vocab)
        assert isinstance(op, ColorChange)
        assert op.new_color == "crimson"

    def test_override_synonym_wins(self, override_file):
        vocab = load_vocabulary(str(override_file))
        assert extract_background_description("make the background a castle", vocab) == (
            "a gothic castle background at dusk"
        )
        # Built-in entries are still there
        assert "red" in vocab.colors

    def test_missing_override_uses_builtin(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            vocab = load_vocabulary(str(tmp_path / "missing.json"))
        assert vocab.objects == load_vocabulary().objects
        assert "not found" in caplog.text
