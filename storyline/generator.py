"""
Story generation pipeline.

Phase 1 groups history URLs into stories with one model call. Phase 2
expands every story into chunks concurrently. A story whose expansion
fails gets deterministic mock chunks instead, so a run only fails when
phase 1 fails.

    async with StoryGenerator.from_config(load_config()) as generator:
        stories = await generator.generate_stories_with_chunks(urls, on_progress=print)
"""
import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Sequence, Type, TypeVar, Union

import structlog
from pydantic import BaseModel

from .clients.text import TextClient
from .clients.unsplash import UnsplashClient
from .config import GeneratorConfig, load_config
from .errors import MalformedResponseError
from .images import ImageCache, MediaResolver, fallback_image_url
from .prompts import (
    build_chat_messages,
    build_chunk_messages,
    build_story_messages,
    with_parse_feedback,
)
from .recovery import parse_records
from .schemas import (
    ChatMessage,
    ChatTurn,
    Chunk,
    GenerationProgress,
    LLMChunkItem,
    LLMStoryItem,
    Story,
    utc_now,
)

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

ProgressCallback = Callable[[GenerationProgress], Union[None, Awaitable[None]]]


# =============================================================================
# OFFLINE FALLBACKS
# =============================================================================

# (title, content template, image keywords)
MOCK_CHUNK_TEMPLATES = [
    (
        "Key Insight #1",
        "Discover the fundamental concepts behind {title}. This chunk explores the basics "
        "and sets the foundation for deeper understanding.",
        "abstract concept idea light bulb",
    ),
    (
        "Historical Context",
        "Learn about the evolution and background of {title}. Understanding the past "
        "helps illuminate the present.",
        "vintage history timeline old",
    ),
    (
        "Expert Perspective",
        "Industry leaders share their insights on {title}. Gain valuable knowledge from "
        "those at the forefront.",
        "professional expert business meeting",
    ),
    (
        "Real-World Application",
        "See how {title} manifests in everyday life. Practical examples that bring theory "
        "to reality.",
        "everyday practical real world application",
    ),
    (
        "Deep Dive",
        "An in-depth exploration of the most fascinating aspects of {title}. For those "
        "who want to go further.",
        "technical detail microscope close up",
    ),
]


def generate_mock_chunks(story: Story) -> List[Chunk]:
    """Five template chunks for `story`, built without any network call."""
    return [
        Chunk(
            id=i,
            title=title,
            content=template.format(title=story.title),
            image=fallback_image_url(keywords),
            image_keywords=keywords,
        )
        for i, (title, template, keywords) in enumerate(MOCK_CHUNK_TEMPLATES, 1)
    ]


def render_fallback_reply(user_message: str, story_title: str) -> str:
    """Canned chat reply for callers to show when generate_chat_response fails."""
    lower = user_message.lower()

    if "summary" in lower or "summarize" in lower:
        return (
            f'Great question! The key takeaway from "{story_title}" is understanding how '
            "different perspectives shape our view of this topic."
        )
    if "why" in lower or "reason" in lower:
        return (
            "That's an insightful question! This topic is important because it impacts how "
            "we think about and approach related concepts."
        )
    if "how" in lower or "what" in lower:
        return "Excellent question! Based on the chunks you've read, there are multiple approaches to this."

    return f'That\'s a thought-provoking question about "{story_title}". What specific aspect interests you most?'


# =============================================================================
# GENERATOR
# =============================================================================

class StoryGenerator:
    """
    Turns history URLs into stories and chunks.

    Dependencies are injected: a text client exposing
    `send_completion(messages) -> str` and a MediaResolver.
    """

    def __init__(
        self,
        text_client: TextClient,
        media_resolver: MediaResolver,
        *,
        max_parse_retries: int = 0,
    ):
        self.text_client = text_client
        self.media = media_resolver
        self.max_parse_retries = max_parse_retries

    @classmethod
    def from_config(
        cls,
        config: GeneratorConfig,
        image_cache: Optional[ImageCache] = None,
    ) -> "StoryGenerator":
        """Build a generator with real HTTP clients from `config`."""
        return cls(
            TextClient(config.llm),
            MediaResolver(
                UnsplashClient(config.image),
                cache=image_cache,
                default_size=config.image.size,
            ),
            max_parse_retries=config.max_parse_retries,
        )

    async def __aenter__(self) -> "StoryGenerator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP clients."""
        close = getattr(self.text_client, "aclose", None)
        if close is not None:
            await close()
        await self.media.aclose()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def generate_stories_from_history(self, urls: Sequence[str]) -> List[Story]:
        """
        Group URLs into stories with resolved images, without chunks.

        Raises:
            RemoteServiceError, MalformedResponseError: If the model call fails
        """
        items = await self._request_stories(urls)
        stories = await self._assemble_stories(items)
        logger.info("stories_generated", count=len(stories), url_count=len(urls))
        return stories

    async def generate_stories_with_chunks(
        self,
        urls: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Story]:
        """
        Generate stories and expand each one into chunks.

        Chunk expansion runs for all stories at once. A story whose
        expansion fails gets generate_mock_chunks() instead; only a failure
        of the story grouping call propagates.

        Args:
            urls: Browsing history URLs
            on_progress: Called with GenerationProgress; may be a coroutine function

        Returns:
            Every story, each with chunks populated
        """
        await _emit(on_progress, GenerationProgress(phase="stories", current=0, total=1))

        items = await self._request_stories(urls)

        await _emit(on_progress, GenerationProgress(phase="stories", current=1, total=1))

        stories = await self._assemble_stories(items)
        total = len(stories)
        completed = 0

        async def expand(story: Story) -> Story:
            nonlocal completed
            await _emit(on_progress, GenerationProgress(
                phase="chunks", current=completed, total=total, story_title=story.title,
            ))

            try:
                chunks = await self._expand_story(story)
            except Exception as e:
                logger.error(
                    "chunk_generation_failed_using_mock",
                    story_id=story.id,
                    title=story.title,
                    error=str(e),
                )
                chunks = generate_mock_chunks(story)

            completed += 1
            await _emit(on_progress, GenerationProgress(
                phase="chunks", current=completed, total=total, story_title=story.title,
            ))
            return story.with_chunks(chunks)

        results = await asyncio.gather(*(expand(story) for story in stories))

        logger.info(
            "stories_with_chunks_generated",
            stories=len(results),
            chunks=sum(len(s.chunks or []) for s in results),
        )
        return list(results)

    async def generate_chunks_from_story(self, story: Story) -> List[Chunk]:
        """
        Expand one existing story into chunks. No mock fallback.

        Raises:
            RemoteServiceError, MalformedResponseError: If the model call fails
        """
        return await self._expand_story(story)

    async def generate_chat_response(
        self,
        user_message: str,
        story_title: str,
        story_description: str,
        chunks: Sequence[Chunk],
        previous_turns: Optional[Sequence[Union[ChatTurn, dict]]] = None,
    ) -> str:
        """
        One reflective chat turn about a finished story.

        Raises:
            RemoteServiceError: If the model call fails. Callers show
                render_fallback_reply() instead.
        """
        turns = [
            t if isinstance(t, ChatTurn) else ChatTurn.model_validate(t)
            for t in (previous_turns or [])
        ]
        messages = build_chat_messages(
            user_message, story_title, story_description, chunks, turns,
        )
        return await self.text_client.send_completion(messages)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _complete_records(
        self,
        messages: List[ChatMessage],
        response_model: Type[T],
    ) -> List[T]:
        """
        Send messages and parse the answer into records.

        With max_parse_retries > 0, an unparseable answer is retried with
        the parse error appended to the prompt.
        """
        current = messages
        for attempt in range(self.max_parse_retries + 1):
            raw = await self.text_client.send_completion(current)
            try:
                records = parse_records(raw, response_model)
                if attempt > 0:
                    logger.info("llm_parse_retry_succeeded", attempt=attempt + 1)
                return records
            except MalformedResponseError as e:
                if attempt >= self.max_parse_retries:
                    raise
                logger.warning(
                    "llm_parse_failed_retrying",
                    attempt=attempt + 1,
                    max_retries=self.max_parse_retries,
                    error=str(e)[:200],
                )
                current = with_parse_feedback(messages, e)

        raise MalformedResponseError("Model response could not be parsed")

    async def _request_stories(self, urls: Sequence[str]) -> List[LLMStoryItem]:
        return await self._complete_records(build_story_messages(urls), LLMStoryItem)

    async def _assemble_stories(self, items: List[LLMStoryItem]) -> List[Story]:
        async def build(index: int, item: LLMStoryItem) -> Story:
            keywords = item.keywords
            image = await self.media.resolve_image(keywords)
            return Story(
                id=item.id if item.id is not None else index,
                title=item.title,
                description=item.description,
                image=image,
                image_keywords=keywords,
                related_urls=item.related_urls,
                created_at=utc_now(),
            )

        return list(await asyncio.gather(*(build(i, item) for i, item in enumerate(items, 1))))

    async def _expand_story(self, story: Story) -> List[Chunk]:
        messages = build_chunk_messages(story.title, story.description, story.related_urls)
        items = await self._complete_records(messages, LLMChunkItem)
        story_keywords = story.image_keywords or story.title

        async def build(index: int, item: LLMChunkItem) -> Chunk:
            keywords = item.image_keywords or item.image or story_keywords
            image = await self.media.resolve_image(keywords)
            return Chunk(
                id=item.id if item.id is not None else index,
                title=item.title,
                content=item.content,
                image=image,
                image_keywords=keywords,
            )

        chunks = list(await asyncio.gather(*(build(i, item) for i, item in enumerate(items, 1))))
        logger.info("chunks_generated", story_id=story.id, count=len(chunks))
        return chunks


async def _emit(callback: Optional[ProgressCallback], progress: GenerationProgress) -> None:
    """Deliver a progress event. A failing callback never breaks the run."""
    if callback is None:
        return
    try:
        result = callback(progress)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("progress_callback_failed", phase=progress.phase, error=str(e))


# =============================================================================
# MODULE-LEVEL CONVENIENCE
# =============================================================================
# Each call builds a generator from load_config() and closes it afterwards.
# Image lookups are memoized across calls in this process.

_image_cache: ImageCache = {}


def clear_image_cache() -> None:
    """Forget every image URL memoized by the module-level functions."""
    _image_cache.clear()


def _generator(config: Optional[GeneratorConfig]) -> StoryGenerator:
    return StoryGenerator.from_config(load_config(config), image_cache=_image_cache)


async def generate_stories_from_history(
    urls: Sequence[str],
    config: Optional[GeneratorConfig] = None,
) -> List[Story]:
    async with _generator(config) as generator:
        return await generator.generate_stories_from_history(urls)


async def generate_stories_with_chunks(
    urls: Sequence[str],
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[GeneratorConfig] = None,
) -> List[Story]:
    async with _generator(config) as generator:
        return await generator.generate_stories_with_chunks(urls, on_progress)


async def generate_chunks_from_story(
    story: Story,
    config: Optional[GeneratorConfig] = None,
) -> List[Chunk]:
    async with _generator(config) as generator:
        return await generator.generate_chunks_from_story(story)


async def generate_chat_response(
    user_message: str,
    story_title: str,
    story_description: str,
    chunks: Sequence[Chunk],
    previous_turns: Optional[Sequence[Union[ChatTurn, dict]]] = None,
    config: Optional[GeneratorConfig] = None,
) -> str:
    async with _generator(config) as generator:
        return await generator.generate_chat_response(
            user_message, story_title, story_description, chunks, previous_turns,
        )
