"""
Unsplash photo search client.

API documentation: https://unsplash.com/documentation#search-photos
"""
from typing import Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from ..config import ImageConfig
from ..errors import RemoteServiceError

logger = structlog.get_logger()


class UnsplashPhoto(BaseModel):
    """The parts of an Unsplash search result we use."""
    id: str
    description: Optional[str] = None
    alt_description: Optional[str] = None
    # raw, full, regular (1080w), small (400w), thumb (200w)
    urls: Dict[str, str] = Field(default_factory=dict)


class UnsplashClient:
    """Searches Unsplash with a static Client-ID credential."""

    def __init__(
        self,
        config: ImageConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self.config.access_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search_photos(self, query: str, per_page: int = 1) -> List[UnsplashPhoto]:
        """
        Search for landscape photos.

        Args:
            query: Search keywords (e.g. "artificial intelligence technology")
            per_page: Number of results to return

        Returns:
            Matching photos, possibly empty

        Raises:
            RemoteServiceError: On missing key, transport failure, non-2xx or bad body
        """
        if not self.is_configured:
            raise RemoteServiceError("UNSPLASH_ACCESS_KEY not set", service="unsplash")

        client = await self._get_client()
        url = f"{self.config.base_url.rstrip('/')}/search/photos"

        try:
            response = await client.get(
                url,
                params={"query": query, "per_page": per_page, "orientation": "landscape"},
                headers={"Authorization": f"Client-ID {self.config.access_key}"},
            )
        except httpx.HTTPError as e:
            raise RemoteServiceError(
                f"Unsplash request failed: {e}",
                service="unsplash",
            ) from e

        if response.status_code >= 400:
            raise RemoteServiceError(
                f"Unsplash API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                service="unsplash",
            )

        try:
            data = response.json()
            photos = [UnsplashPhoto.model_validate(item) for item in data.get("results", [])]
        except (ValueError, AttributeError) as e:
            raise RemoteServiceError(
                f"Unsplash returned a malformed response: {e}",
                status_code=response.status_code,
                service="unsplash",
            ) from e

        logger.debug("unsplash_search", query=query, results=len(photos))
        return photos
