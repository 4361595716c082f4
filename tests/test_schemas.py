"""
Tests for the data model.
"""
from datetime import datetime, timezone

import pytest

from storyline.schemas import Chunk, GenerationProgress, Story


def make_story(**overrides):
    values = {
        "id": 1,
        "title": "Tide Pools",
        "description": "Life between the tides",
        "image": "https://img.test/tide",
        "image_keywords": "tide pool starfish",
        "related_urls": ["https://ocean.example/tide"],
    }
    values.update(overrides)
    return Story(**values)


CHUNKS = [
    Chunk(id=i, title=f"Card {i}", content="...", image=f"https://img.test/{i}")
    for i in range(1, 6)
]


def test_with_chunks_returns_copy():
    story = make_story()
    done = story.with_chunks(CHUNKS)

    assert story.chunks is None
    assert done.chunks == CHUNKS
    assert done.title == story.title


def test_chunks_never_replaced():
    done = make_story().with_chunks(CHUNKS)

    with pytest.raises(ValueError):
        done.with_chunks(CHUNKS[:1])


def test_serializes_with_camel_case_names():
    created = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    data = make_story(created_at=created).with_chunks(CHUNKS[:1]).model_dump(mode="json", by_alias=True)

    assert data["imageKeywords"] == "tide pool starfish"
    assert data["relatedUrls"] == ["https://ocean.example/tide"]
    assert data["createdAt"].startswith("2024-06-01T12:00:00")
    assert data["chunks"][0]["imageKeywords"] is None


def test_accepts_camel_case_input():
    story = Story.model_validate({
        "id": 2,
        "title": "Kelp",
        "image": "https://img.test/kelp",
        "imageKeywords": "kelp forest",
        "relatedUrls": ["https://ocean.example/kelp"],
    })

    assert story.image_keywords == "kelp forest"
    assert story.related_urls == ["https://ocean.example/kelp"]
    assert story.description == ""


def test_progress_alias():
    progress = GenerationProgress(phase="chunks", current=1, total=3, story_title="Kelp")
    assert progress.model_dump(by_alias=True)["storyTitle"] == "Kelp"
