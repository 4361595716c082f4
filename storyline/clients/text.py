"""
Client for an OpenAI-compatible chat completions endpoint (DeepSeek by default).

One POST per call, no retries: retry policy belongs to the caller.
"""
from typing import Optional, Sequence

import httpx
import structlog

from ..config import LLMConfig
from ..errors import RemoteServiceError
from ..schemas import ChatMessage

logger = structlog.get_logger()


class TextClient:
    """
    Sends role-tagged messages to one configured completion endpoint.

    The HTTP client is created on first use unless one is injected.
    """

    def __init__(
        self,
        config: LLMConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def service(self) -> str:
        return self.config.provider

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

    def _build_request(self, messages: Sequence[ChatMessage]) -> dict:
        return {
            "model": self.config.model,
            "messages": [m.model_dump() for m in messages],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    async def send_completion(self, messages: Sequence[ChatMessage]) -> str:
        """
        Send messages and return the first choice's content.

        Args:
            messages: Ordered messages, normally [system, user]

        Returns:
            Raw completion text

        Raises:
            RemoteServiceError: On missing configuration, transport failure,
                non-2xx status or a malformed response envelope
        """
        if not self.config.base_url:
            raise RemoteServiceError(
                f"No endpoint configured for provider '{self.service}'",
                service=self.service,
            )
        if not self.config.api_key:
            raise RemoteServiceError(
                f"No API key configured for provider '{self.service}'",
                service=self.service,
            )

        client = await self._get_client()
        request_body = self._build_request(messages)

        logger.info(
            "calling_llm",
            provider=self.service,
            model=self.config.model,
            messages=len(request_body["messages"]),
            prompt_len=sum(len(m["content"]) for m in request_body["messages"]),
        )

        try:
            response = await client.post(
                self.config.base_url,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                json=request_body,
            )
        except httpx.HTTPError as e:
            logger.error("llm_request_failed", provider=self.service, error=str(e))
            raise RemoteServiceError(
                f"{self.service} API request failed: {e}",
                service=self.service,
            ) from e

        if response.status_code >= 400:
            message = _error_message(response) or response.reason_phrase
            logger.error(
                "llm_http_error",
                provider=self.service,
                status_code=response.status_code,
                error=message,
            )
            raise RemoteServiceError(
                f"{self.service} API error: {message}",
                status_code=response.status_code,
                service=self.service,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("llm_malformed_envelope", provider=self.service, body=response.text[:300])
            raise RemoteServiceError(
                f"{self.service} API returned a malformed response: {e}",
                status_code=response.status_code,
                service=self.service,
            ) from e

        if not isinstance(content, str):
            raise RemoteServiceError(
                f"{self.service} API returned non-text content",
                status_code=response.status_code,
                service=self.service,
            )

        logger.info(
            "llm_response",
            provider=self.service,
            content_len=len(content),
            content_preview=content[:200] if content else "EMPTY",
        )
        return content


def _error_message(response: httpx.Response) -> Optional[str]:
    """Pull error.message out of an error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return None

