"""
Prompt templates and message builders.

Every builder returns [system, user] messages for the text client. The
story and chunk prompts demand a bare JSON array without markdown: that
is what recovery.parse_structured expects.
"""
from typing import List, Optional, Sequence

from .schemas import ChatMessage, ChatTurn, Chunk

# Larger lists make responses long enough to hit the token limit
MAX_PROMPT_URLS = 50


# =============================================================================
# STORY GROUPING
# =============================================================================

STORY_SYSTEM_PROMPT = (
    "You are a content curator. Based on browsing history URLs, group them into "
    "3-5 thematic stories that represent the user's interests. Keep your response concise."
)

STORY_USER_PROMPT = """Based on the following browsing history URLs, group them into 3-5 thematic stories.
{truncation_note}
For each story, provide:
- id: A unique number (1, 2, 3, etc.)
- title: A catchy title (max 40 characters)
- description: Brief description (max 80 characters)
- imageKeywords: 2-3 English keywords for image search
- relatedUrls: Array of 2-5 most relevant URLs from input

URLs to analyze:
{url_list}

CRITICAL: Respond with ONLY a valid JSON array. No markdown, no explanation, no code blocks.
Format: [{{"id":1,"title":"Title","description":"Desc","imageKeywords":"keyword1 keyword2","relatedUrls":["url1"]}}]"""


# =============================================================================
# CHUNK EXPANSION
# =============================================================================

CHUNK_SYSTEM_PROMPT = (
    "You are an educational content creator. Create engaging, bite-sized knowledge cards."
)

CHUNK_USER_PROMPT = """Create 5 engaging "chunks" (bite-sized knowledge cards) for the following topic:

Topic: {story_title}
Description: {story_description}
Related URLs for context: {related_urls}

Each chunk should be educational and provide unique insights. Create exactly 5 chunks with:
- id: Number from 1 to 5
- title: Short, catchy title (max 30 characters)
- content: Educational content that teaches something valuable (100-150 characters)
- imageKeywords: 2-4 specific English keywords for image search that visually represent THIS SPECIFIC chunk's content. Each chunk should have UNIQUE keywords that match its specific topic. Be creative and specific:
  - For a core concept chunk: focus on abstract visual metaphors
  - For historical context: vintage, historical imagery
  - For expert insight: professional, academic imagery
  - For real-world application: practical, everyday imagery
  - For deep dive: detailed, close-up, technical imagery

The chunks should follow this progression:
1. Core Concept - Introduce the fundamental idea
2. Historical Context - Background and evolution
3. Expert Insight - What experts say about this
4. Real-World Application - Practical examples
5. Deep Dive - Advanced or fascinating aspect

IMPORTANT: Respond ONLY with valid JSON array, no markdown formatting, no code blocks. Example:
[{{"id":1,"title":"Key Insight","content":"The fundamental concept...","imageKeywords":"abstract concept light bulb idea"}}]"""


# =============================================================================
# REFLECTIVE CHAT
# =============================================================================

CHAT_SYSTEM_PROMPT = """You are a helpful learning assistant. The user has just finished reading about "{story_title}".

Story description: {story_description}

The user learned these key points:
{key_points}

Your role is to:
1. Help the user reflect on what they learned
2. Answer questions about the topic
3. Provide additional insights when relevant
4. Encourage deeper thinking

Keep responses concise and engaging (max 150 words). Be conversational and supportive."""

CHAT_HISTORY_PROMPT = """Previous conversation:
{history}

User: {user_message}"""


# Appended when a response could not be parsed and the orchestrator retries
PARSE_RETRY_SUFFIX = """

IMPORTANT: Your previous response was not a valid JSON array. Error: {error}

Please respond with a valid JSON array only, no additional text or markdown formatting."""


# =============================================================================
# BUILDERS
# =============================================================================

def build_story_messages(urls: Sequence[str], max_urls: int = MAX_PROMPT_URLS) -> List[ChatMessage]:
    """
    Messages asking the model to group history URLs into stories.

    Only the first `max_urls` URLs are shown; the prompt says how many of
    the total that is when the list was cut.
    """
    total = len(urls)
    shown = list(urls[:max_urls])

    truncation_note = ""
    if total > max_urls:
        truncation_note = f"(Showing {max_urls} of {total} URLs for analysis)\n"

    url_list = "\n".join(f"{i}. {url}" for i, url in enumerate(shown, 1))

    return [
        ChatMessage(role="system", content=STORY_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=STORY_USER_PROMPT.format(truncation_note=truncation_note, url_list=url_list),
        ),
    ]


def build_chunk_messages(
    story_title: str,
    story_description: str,
    related_urls: Optional[Sequence[str]] = None,
) -> List[ChatMessage]:
    """Messages asking the model to expand one story into five chunks."""
    return [
        ChatMessage(role="system", content=CHUNK_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=CHUNK_USER_PROMPT.format(
                story_title=story_title,
                story_description=story_description,
                related_urls=", ".join(related_urls or []),
            ),
        ),
    ]


def build_chat_messages(
    user_message: str,
    story_title: str,
    story_description: str,
    chunks: Sequence[Chunk],
    previous_turns: Optional[Sequence[ChatTurn]] = None,
) -> List[ChatMessage]:
    """Messages for one turn of the reflective chat about a finished story."""
    key_points = "\n".join(
        f"{i}. {chunk.title}: {chunk.content}" for i, chunk in enumerate(chunks, 1)
    )
    system_prompt = CHAT_SYSTEM_PROMPT.format(
        story_title=story_title,
        story_description=story_description,
        key_points=key_points,
    )

    history = "\n".join(
        f"{'User' if turn.sender == 'user' else 'Assistant'}: {turn.text}"
        for turn in (previous_turns or [])
    )
    if history:
        user_prompt = CHAT_HISTORY_PROMPT.format(history=history, user_message=user_message)
    else:
        user_prompt = user_message

    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=user_prompt),
    ]


def with_parse_feedback(messages: List[ChatMessage], error: Exception) -> List[ChatMessage]:
    """Copy of `messages` whose user prompt asks the model to fix its JSON."""
    fixed = list(messages)
    last = fixed[-1]
    fixed[-1] = ChatMessage(
        role=last.role,
        content=last.content + PARSE_RETRY_SUFFIX.format(error=str(error)[:300]),
    )
    return fixed
