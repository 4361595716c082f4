"""
Pydantic schemas for the story generation pipeline.

Python attributes are snake_case. Serialized output uses the camelCase
names of the stored format (imageKeywords, relatedUrls, createdAt), so
dump with `model_dump(by_alias=True)` when handing results to storage.
Both spellings are accepted on input.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now():
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# DOMAIN MODELS
# =============================================================================

class Chunk(BaseModel):
    """One short knowledge card belonging to a story."""
    model_config = {"populate_by_name": True}

    id: int
    title: str
    content: str
    image: str = Field(description="Resolved image URL (never a bare keyword)")
    image_keywords: Optional[str] = Field(default=None, alias="imageKeywords")


class Story(BaseModel):
    """
    A themed group of related history URLs.

    `chunks` stays None until chunk expansion for the story has settled.
    Use with_chunks() to attach them; a story's chunks are never replaced.
    """
    model_config = {"populate_by_name": True}

    id: int
    title: str
    description: str = ""
    image: str
    image_keywords: Optional[str] = Field(default=None, alias="imageKeywords")
    related_urls: List[str] = Field(default_factory=list, alias="relatedUrls")
    chunks: Optional[List[Chunk]] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def with_chunks(self, chunks: List[Chunk]) -> "Story":
        """Return a copy of this story carrying `chunks`."""
        if self.chunks is not None:
            raise ValueError(f"Story {self.id} already has chunks")
        return self.model_copy(update={"chunks": list(chunks)})


class GenerationProgress(BaseModel):
    """Progress notification emitted while generating. Not persisted."""
    model_config = {"populate_by_name": True}

    phase: Literal["stories", "chunks"]
    current: int
    # In the "chunks" phase this is the number of stories, not chunks
    total: int
    story_title: Optional[str] = Field(default=None, alias="storyTitle")


# =============================================================================
# RAW LLM RECORDS (validated after recovery)
# =============================================================================

def _join_keywords(v):
    """Models sometimes return keyword lists instead of a string."""
    if isinstance(v, list):
        return " ".join(str(k) for k in v if k)
    return v


def _coerce_id(v):
    """Ids are a convention: anything that isn't a whole number is dropped."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else None
    if isinstance(v, str):
        try:
            return int(v)
        except ValueError:
            return None
    return None


class LLMStoryItem(BaseModel):
    """Single story grouping from the model."""
    model_config = {"populate_by_name": True}

    id: Optional[int] = None
    title: str
    description: str = ""
    image_keywords: Optional[str] = Field(default=None, alias="imageKeywords")
    image: Optional[str] = None  # legacy name for imageKeywords
    related_urls: List[str] = Field(default_factory=list, alias="relatedUrls")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)

    @field_validator("image_keywords", "image", mode="before")
    @classmethod
    def join_keyword_list(cls, v):
        return _join_keywords(v)

    @field_validator("related_urls", mode="before")
    @classmethod
    def ensure_list(cls, v):
        """Ensure relatedUrls is a list of strings."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, list):
            # Mismatched entries are tolerated, non-strings are dropped
            return [u for u in v if isinstance(u, str)]
        return v

    @property
    def keywords(self) -> str:
        """Image query: imageKeywords, then legacy image, then title."""
        return self.image_keywords or self.image or self.title


class LLMChunkItem(BaseModel):
    """Single chunk from the model."""
    model_config = {"populate_by_name": True}

    id: Optional[int] = None
    title: str
    content: str = ""
    image_keywords: Optional[str] = Field(default=None, alias="imageKeywords")
    image: Optional[str] = None  # legacy name for imageKeywords

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)

    @field_validator("image_keywords", "image", mode="before")
    @classmethod
    def join_keyword_list(cls, v):
        return _join_keywords(v)


# =============================================================================
# CHAT
# =============================================================================

class ChatMessage(BaseModel):
    """Role-tagged message sent to the text completion endpoint."""
    role: Literal["system", "user", "assistant"]
    content: str


class ChatTurn(BaseModel):
    """One earlier turn of a reflective chat about a story."""
    text: str
    sender: Literal["user", "bot"]


# =============================================================================
# HISTORY INPUT
# =============================================================================

class HistoryStats(BaseModel):
    """Filtering stats reported by the history collector."""
    total: int = 0
    filtered: int = 0
    removed: int = 0


class HistoryHandoff(BaseModel):
    """Payload handed over by the browser history collector."""
    urls: List[str] = Field(default_factory=list)
    timestamp: Optional[int] = None
    source: str = ""
    stats: HistoryStats = Field(default_factory=HistoryStats)

    @field_validator("urls", mode="before")
    @classmethod
    def drop_non_strings(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            return [u for u in v if isinstance(u, str) and u.strip()]
        return v


class JsonlParseResult(BaseModel):
    """URLs extracted from a JSON Lines history export."""
    model_config = {"populate_by_name": True}

    urls: List[str] = Field(default_factory=list)
    total_lines: int = Field(default=0, alias="totalLines")
    valid_lines: int = Field(default=0, alias="validLines")
    errors: List[str] = Field(default_factory=list)
