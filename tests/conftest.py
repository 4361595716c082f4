"""
Shared fixtures: stub text client and fake photo search, no network.
"""
import json
import re
from urllib.parse import quote

import pytest

from storyline.clients.unsplash import UnsplashPhoto
from storyline.errors import RemoteServiceError
from storyline.images import MediaResolver

STORY_PROMPT_MARKER = "group them into 3-5 thematic stories"


def chunks_json(topic: str, count: int = 5) -> str:
    return json.dumps([
        {
            "id": i,
            "title": f"{topic} card {i}",
            "content": f"Something worth knowing about {topic}, part {i}.",
            "imageKeywords": f"{topic} visual {i}",
        }
        for i in range(1, count + 1)
    ])


class StubTextClient:
    """
    Answers story prompts with `story_response` and chunk prompts per topic.

    `fail_topics` makes chunk requests for those story titles raise.
    """

    def __init__(self, story_response, chunk_responses=None, fail_topics=()):
        self.story_response = story_response
        self.chunk_responses = chunk_responses or {}
        self.fail_topics = set(fail_topics)
        self.calls = []

    async def send_completion(self, messages):
        self.calls.append(messages)
        user = messages[-1].content

        if STORY_PROMPT_MARKER in user:
            if isinstance(self.story_response, Exception):
                raise self.story_response
            return self.story_response

        match = re.search(r"^Topic: (.*)$", user, re.MULTILINE)
        if match:
            topic = match.group(1)
            if topic in self.fail_topics:
                raise RemoteServiceError("deepseek API error: upstream overloaded", status_code=503)
            return self.chunk_responses.get(topic, chunks_json(topic))

        return "Happy to help you reflect on that."


class FakePhotoSearch:
    """Stands in for UnsplashClient."""

    def __init__(self, fail=False, empty=False):
        self.fail = fail
        self.empty = empty
        self.queries = []
        self.closed = False

    @property
    def is_configured(self):
        return True

    async def search_photos(self, query, per_page=1):
        self.queries.append(query)
        if self.fail:
            raise RemoteServiceError("Unsplash API error: 403 Rate Limit Exceeded", status_code=403)
        if self.empty:
            return []
        base = f"https://images.unsplash.test/{quote(query, safe='')}"
        return [UnsplashPhoto(
            id="photo-1",
            urls={size: f"{base}?size={size}" for size in ("raw", "full", "regular", "small", "thumb")},
        )]

    async def aclose(self):
        self.closed = True


@pytest.fixture
def photo_search():
    return FakePhotoSearch()


@pytest.fixture
def resolver(photo_search):
    return MediaResolver(photo_search)
