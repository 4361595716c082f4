"""
Keyword -> image URL resolution.

Remote search results are memoized per (keyword, size) for the lifetime
of the resolver. Any failure falls back to a deterministic URL built from
the keyword, which needs no network access. Fallbacks are never cached, so
the next call for the same keyword tries the remote search again.
"""
import asyncio
import hashlib
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import structlog

from .clients.unsplash import UnsplashClient
from .errors import ImageResolutionFailure

logger = structlog.get_logger()

FALLBACK_IMAGE_URL = "https://source.unsplash.com/800x600/?{query}&sig={seed}"

ImageCache = Dict[Tuple[str, str], str]


def fallback_image_url(keyword: str, index: int = 0) -> str:
    """Deterministic image URL for a keyword. Always succeeds, no network."""
    seed = hashlib.md5(f"{keyword}-{index}".encode()).hexdigest()[:8]
    return FALLBACK_IMAGE_URL.format(query=quote(keyword, safe=""), seed=seed)


class MediaResolver:
    """
    Resolves free-text keywords to image URLs.

    The cache is a plain dict shared by reference; concurrent misses on the
    same key can both hit the remote search, which is harmless.
    """

    def __init__(
        self,
        client: Optional[UnsplashClient] = None,
        cache: Optional[ImageCache] = None,
        default_size: str = "regular",
    ):
        self.client = client
        self.cache: ImageCache = cache if cache is not None else {}
        self.default_size = default_size

    async def resolve_image(self, keywords: str, size: Optional[str] = None) -> str:
        """
        Get an image URL for `keywords`. Never raises.

        Args:
            keywords: Free-text search query
            size: Image size variant (raw, full, regular, small, thumb)

        Returns:
            Remote photo URL, or the fallback URL if the search failed
        """
        size = size or self.default_size
        cache_key = (keywords, size)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("image_cache_hit", keywords=keywords, size=size)
            return cached

        try:
            url = await self._search(keywords, size)
        except ImageResolutionFailure as e:
            logger.warning("image_fallback_used", keywords=keywords, size=size, reason=str(e))
            return fallback_image_url(keywords)

        self.cache[cache_key] = url
        return url

    async def resolve_many(self, keywords: Sequence[str], size: Optional[str] = None) -> List[str]:
        """Resolve several keyword strings concurrently, preserving order."""
        return list(await asyncio.gather(*(self.resolve_image(k, size) for k in keywords)))

    def clear(self) -> None:
        """Drop every cached URL."""
        self.cache.clear()
        logger.info("image_cache_cleared")

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    async def _search(self, keywords: str, size: str) -> str:
        """Top remote match at `size`, or ImageResolutionFailure."""
        if not keywords or not keywords.strip():
            raise ImageResolutionFailure("empty keywords")
        if self.client is None or not self.client.is_configured:
            raise ImageResolutionFailure("image search not configured")

        try:
            photos = await self.client.search_photos(keywords, per_page=1)
        except Exception as e:
            raise ImageResolutionFailure(f"image search failed: {e}") from e

        if not photos:
            raise ImageResolutionFailure("no results")

        url = photos[0].urls.get(size)
        if not url:
            raise ImageResolutionFailure(f"no '{size}' url in result")

        logger.debug("image_resolved", keywords=keywords, size=size)
        return url
