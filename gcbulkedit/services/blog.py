"""Blog post documents stored in Redis.

Each post is a JSON document at ``blog:post:<slug>``; ``blog:posts`` is a
sorted set of slugs scored by publication date for newest-first listing.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, time, UTC
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from gcbulkedit.errors import UpstreamUnavailable
from gcbulkedit.models import BlogPost

logger = structlog.get_logger()


class BlogRepository:
    """Find-all / find-by-slug / insert-if-absent for blog posts."""

    def __init__(self, redis: Redis, prefix: str = "gcbe", timeout: float = 5.0) -> None:
        self._redis = redis
        self._prefix = prefix
        self._timeout = timeout

    def _post_key(self, slug: str) -> str:
        return f"{self._prefix}:blog:post:{slug}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}:blog:posts"

    async def _call(self, operation: str, awaitable: Any) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            logger.error("Blog store call failed", operation=operation, error=str(e))
            raise UpstreamUnavailable("Blog store unavailable") from e

    async def list_posts(self) -> list[BlogPost]:
        """All posts, newest first."""
        slugs = await self._call("zrevrange", self._redis.zrevrange(self._index_key, 0, -1))
        posts = []
        for slug in slugs:
            post = await self.get_post(slug)
            if post is not None:
                posts.append(post)
        return posts

    async def get_post(self, slug: str) -> BlogPost | None:
        raw = await self._call("get", self._redis.get(self._post_key(slug)))
        if raw is None:
            return None
        return BlogPost.model_validate_json(raw)

    async def insert_if_absent(self, post: BlogPost) -> bool:
        """Store a post unless its slug already exists. True if inserted."""
        inserted = await self._call(
            "set_nx", self._redis.set(self._post_key(post.slug), post.model_dump_json(), nx=True)
        )
        if not inserted:
            return False

        score = datetime.combine(post.date, time.min, tzinfo=UTC).timestamp()
        await self._call("zadd", self._redis.zadd(self._index_key, {post.slug: score}))
        return True
