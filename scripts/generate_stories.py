#!/usr/bin/env python3
"""
Generate stories (and chunks) from a browsing history file.

Reads API keys from .env (DEEPSEEK_API_KEY / LLM_API_KEY, UNSPLASH_ACCESS_KEY).

Usage:
    python scripts/generate_stories.py history.jsonl
    python scripts/generate_stories.py handoff.json --output stories.json
    python scripts/generate_stories.py urls.txt --no-chunks --max-urls 30
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from storyline import GenerationProgress, StoryGenerator, StorylineError, load_config, read_urls


def print_progress(progress: GenerationProgress) -> None:
    if progress.phase == "stories":
        status = "done" if progress.current else "grouping URLs..."
        print(f"[stories] {status}", file=sys.stderr)
    else:
        print(
            f"[chunks {progress.current}/{progress.total}] {progress.story_title or ''}",
            file=sys.stderr,
        )


async def run(args: argparse.Namespace) -> int:
    try:
        urls = read_urls(args.input)
    except (OSError, ValueError) as e:
        print(f"✗ Could not read {args.input}: {e}", file=sys.stderr)
        return 1

    if args.max_urls:
        urls = urls[:args.max_urls]

    if not urls:
        print(f"✗ No URLs found in {args.input}", file=sys.stderr)
        return 1

    print(f"✓ Loaded {len(urls)} URLs from {args.input}", file=sys.stderr)

    async with StoryGenerator.from_config(load_config()) as generator:
        try:
            if args.no_chunks:
                stories = await generator.generate_stories_from_history(urls)
            else:
                stories = await generator.generate_stories_with_chunks(urls, on_progress=print_progress)
        except StorylineError as e:
            print(f"✗ Story generation failed: {e}", file=sys.stderr)
            return 1

    payload = json.dumps(
        [story.model_dump(mode="json", by_alias=True, exclude_none=True) for story in stories],
        indent=2,
        ensure_ascii=False,
    )

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"✓ Wrote {len(stories)} stories to {args.output}", file=sys.stderr)
    else:
        print(payload)

    return 0


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Turn browsing history into stories and knowledge-card chunks"
    )
    parser.add_argument("input", help="History file: .jsonl export, .json handoff payload, or one URL per line")
    parser.add_argument("-o", "--output", help="Write stories JSON here instead of stdout")
    parser.add_argument("--no-chunks", action="store_true", help="Only group URLs into stories")
    parser.add_argument("--max-urls", type=int, default=None, help="Use only the first N URLs")
    args = parser.parse_args()

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
