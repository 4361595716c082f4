"""
Story generation from browsing history.

Groups history URLs into themed stories, expands each story into five
knowledge-card chunks, and attaches an image to every unit.
"""

__version__ = "0.1.0"

from .config import (
    GeneratorConfig,
    ImageConfig,
    LLMConfig,
    load_config,
    resolve_provider,
)

from .errors import (
    StorylineError,
    MalformedResponseError,
    RemoteServiceError,
    ImageResolutionFailure,
)

from .schemas import (
    Story,
    Chunk,
    GenerationProgress,
    ChatMessage,
    ChatTurn,
    HistoryHandoff,
)

from .recovery import (
    parse_structured,
    parse_records,
)

from .images import (
    MediaResolver,
    fallback_image_url,
)

from .generator import (
    StoryGenerator,
    generate_mock_chunks,
    render_fallback_reply,
    # Module-level entry points (config from environment)
    generate_stories_with_chunks,
    generate_stories_from_history,
    generate_chunks_from_story,
    generate_chat_response,
    clear_image_cache,
)

from .history import (
    parse_jsonl,
    load_handoff,
    read_urls,
)
