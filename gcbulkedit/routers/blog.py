"""Blog post endpoints."""

from fastapi import APIRouter

from gcbulkedit.dependencies import Blog
from gcbulkedit.errors import NotFound
from gcbulkedit.models import BlogPost, BlogPostSummary

router = APIRouter(prefix="/blog", tags=["blog"])


@router.get(
    "",
    response_model=list[BlogPostSummary],
    summary="List blog posts",
    description="All stored posts, newest first, without their bodies.",
)
async def list_posts(blog: Blog) -> list[BlogPostSummary]:
    posts = await blog.list_posts()
    return [BlogPostSummary(**post.model_dump(exclude={"content"})) for post in posts]


@router.get(
    "/{slug}",
    response_model=BlogPost,
    summary="Get a blog post",
)
async def get_post(slug: str, blog: Blog) -> BlogPost:
    post = await blog.get_post(slug)
    if post is None:
        raise NotFound("Blog post not found")
    return post
