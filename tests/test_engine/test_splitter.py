"""Tests for the phrase splitter."""

from __future__ import annotations

import pytest

from refiner.engine.splitter import (
    choose_split,
    clean_phrase,
    looks_like_bare_noun,
    split_instruction,
    split_phrases,
)


# ---------------------------------------------------------------------------
# 1. Strategy selection
# ---------------------------------------------------------------------------

class TestChooseSplit:
    def test_conjunction_split(self):
        name, parts = choose_split("add sunglasses and a cigar")
        assert name == "conjunction"
        assert parts == ["add sunglasses", "a cigar"]

    def test_comma_before_verb(self):
        name, parts = choose_split("make shirt red, change background to neon city, add a tattoo")
        assert name == "comma_verb"
        assert len(parts) == 3

    def test_verb_spans_win_when_they_find_more_parts(self):
        name, parts = choose_split("add sunglasses, add a cigar, and make background forest")
        assert name == "verb_spans"
        assert parts == ["add sunglasses", "add a cigar", "make background forest"]

    def test_tie_goes_to_earlier_strategy(self):
        name, parts = choose_split("change the background to forest and add a chain")
        assert name == "conjunction"
        assert parts == ["change the background to forest", "add a chain"]

    def test_single_clause_is_whole(self):
        name, parts = choose_split("make the background snowfall")
        assert parts == ["make the background snowfall"]

    def test_ampersand(self):
        _, parts = choose_split("add a hat & a scarf")
        assert parts == ["add a hat", "a scarf"]


# ---------------------------------------------------------------------------
# 2. Cleanup and bare-noun detection
# ---------------------------------------------------------------------------

class TestCleanup:
    def test_strips_leading_conjunction_and_article(self):
        assert clean_phrase("and the hat.") == "hat"

    def test_keeps_verb_phrases(self):
        assert clean_phrase("add a cigar,") == "add a cigar"

    @pytest.mark.parametrize("phrase", ["cigar", "red hat", "gold chain necklace"])
    def test_bare_nouns(self, phrase):
        assert looks_like_bare_noun(phrase)

    @pytest.mark.parametrize(
        "phrase",
        [
            "the cat is happy",
            "snow falling behind him",
            "a very big shiny golden crown",
            "",
        ],
    )
    def test_not_bare_nouns(self, phrase):
        assert not looks_like_bare_noun(phrase)


# ---------------------------------------------------------------------------
# 3. Action-word inheritance
# ---------------------------------------------------------------------------

class TestInheritance:
    def test_add_x_and_y(self, vocab):
        phrases = split_phrases("add sunglasses and a cigar", vocab)
        assert [p.text for p in phrases] == ["add sunglasses", "add cigar"]
        assert phrases[0].inherited_verb is None
        assert phrases[1].inherited_verb == "add"
        assert phrases[1].source == "a cigar"

    def test_remove_x_and_y(self, vocab):
        assert split_instruction("remove the hat and the necklace", vocab) == [
            "remove the hat",
            "remove necklace",
        ]

    def test_clause_with_own_verb_is_untouched(self, vocab):
        assert split_instruction("change the background to forest and add a chain", vocab) == [
            "change the background to forest",
            "add a chain",
        ]

    def test_indirect_background_phrase_does_not_inherit(self, vocab):
        phrases = split_phrases("add a hat and snow falling behind him", vocab)
        assert phrases[1].text == "snow falling behind him"
        assert phrases[1].inherited_verb is None

    def test_no_inheritance_without_previous_verb(self, vocab):
        phrases = split_phrases("sunglasses and a cigar", vocab)
        assert [p.inherited_verb for p in phrases] == [None, None]

    def test_comma_list_of_objects(self, vocab):
        assert split_instruction("add sunglasses, a hat and a cigar", vocab) == [
            "add sunglasses",
            "add hat",
            "add cigar",
        ]

    def test_comma_before_non_object_is_kept(self, vocab):
        assert split_instruction("change the background to forest, with trees", vocab) == [
            "change the background to forest, with trees",
        ]
