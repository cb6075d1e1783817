#!/usr/bin/env python3
"""
Seed blog posts into the document store.

Posts whose slug already exists are skipped, so the script can be re-run.

Usage:
    python -m gcbulkedit.scripts.seed_blog
    python -m gcbulkedit.scripts.seed_blog --file posts.json
"""

import argparse
import asyncio
import json
import sys
from importlib import resources
from pathlib import Path

import structlog
from pydantic import TypeAdapter

from gcbulkedit.config import get_settings
from gcbulkedit.models import BlogPost
from gcbulkedit.services.blog import BlogRepository
from gcbulkedit.services.store import create_redis
from gcbulkedit.utils.logging import configure_logging

logger = structlog.get_logger()

posts_adapter = TypeAdapter(list[BlogPost])


def load_posts(path: Path | None = None) -> list[BlogPost]:
    """Load posts from a JSON file, defaulting to the bundled posts."""
    if path is None:
        raw = (resources.files("gcbulkedit") / "data" / "blog_posts.json").read_text(encoding="utf-8")
    else:
        raw = path.read_text(encoding="utf-8")
    return posts_adapter.validate_python(json.loads(raw))


async def seed(repository: BlogRepository, posts: list[BlogPost]) -> tuple[int, int]:
    """Insert posts that are not stored yet. Returns (inserted, skipped)."""
    inserted = skipped = 0
    for post in posts:
        if await repository.insert_if_absent(post):
            logger.info("Inserted blog post", slug=post.slug, title=post.title)
            inserted += 1
        else:
            logger.info("Skipped existing blog post", slug=post.slug)
            skipped += 1
    return inserted, skipped


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(settings)

    redis = create_redis(settings)
    try:
        repository = BlogRepository(
            redis, prefix=settings.redis_key_prefix, timeout=settings.redis_timeout_seconds
        )
        inserted, skipped = await seed(repository, load_posts(args.file))
    finally:
        await redis.aclose()

    logger.info("Blog seeding complete", inserted=inserted, skipped=skipped)
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed blog posts into Redis")
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="JSON file with a list of posts (default: bundled posts)",
    )
    return parser.parse_args(argv)


def cli() -> None:
    try:
        sys.exit(asyncio.run(main(parse_args())))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(1)


if __name__ == "__main__":
    cli()
