"""Shared test fixtures."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone

import pytest

from refiner.engine.vocabulary import load_vocabulary
from refiner.orchestrator import Orchestrator
from refiner.state.registry import ChainRegistry


# Scene prompts shaped like the provider's structured prompt

SKULL_SCENE = {
    "background": "transparent",
    "objects": [
        {
            "description": "A grinning white skull with hollow eye sockets",
            "location": "center",
            "relationship": "Main subject",
            "relative_size": "large",
            "shape_and_color": "Rounded skull shape, ivory white color",
            "texture": "Smooth bone",
            "appearance_details": "Slightly weathered",
            "number_of_objects": 1,
            "orientation": "Facing forward",
        },
        {
            "description": "A black shirt worn by the skeleton",
            "location": "lower half",
            "relationship": "Worn by the main subject",
            "relative_size": "medium",
            "shape_and_color": "Loose t-shirt cut, black color",
            "texture": "Cotton",
            "appearance_details": "Simple crew neck",
            "number_of_objects": 1,
            "orientation": "Upright",
            "pose_hint": "relaxed",
        },
    ],
    "short_description": "A cartoon skeleton in a black shirt against a transparent background.",
    "style_medium": "digital illustration",
}

FOREST_SCENE = {
    "background": "a natural forest background with tall trees and greenery",
    "background_context": {
        "is_explicitly_set": True,
        "description": "a natural forest background with tall trees and greenery",
    },
    "objects": [
        {
            "description": "A smiling cat sitting upright",
            "shape_and_color": "Round body, orange color",
        }
    ],
    "short_description": "A smiling cat. Background: a natural forest background with tall trees and greenery.",
}

SAMPLE_INSTRUCTIONS = [
    "add sunglasses and a cigar",
    "make the background snowfall",
    "change the background to forest and add a chain",
    "make the shirt red",
    "remove background",
    "add blood to the nose",
]


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def vocab():
    return load_vocabulary()


@pytest.fixture
def skull_scene() -> dict:
    return copy.deepcopy(SKULL_SCENE)


@pytest.fixture
def forest_scene() -> dict:
    return copy.deepcopy(FOREST_SCENE)


@pytest.fixture
def registry() -> ChainRegistry:
    return ChainRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def orchestrator(vocab) -> Orchestrator:
    return Orchestrator(registry=ChainRegistry(), vocab=vocab)
