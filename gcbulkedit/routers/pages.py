"""Marketing and legal pages shipped as package data."""

from functools import lru_cache
from importlib import resources

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"], include_in_schema=False)


@lru_cache
def load_page(name: str) -> str:
    """Read an HTML page from ``gcbulkedit/pages``."""
    return (resources.files("gcbulkedit") / "pages" / f"{name}.html").read_text(encoding="utf-8")


@router.get("/", response_class=HTMLResponse)
async def landing() -> HTMLResponse:
    return HTMLResponse(load_page("index"))


@router.get("/payment-success", response_class=HTMLResponse)
async def payment_success() -> HTMLResponse:
    return HTMLResponse(load_page("payment_success"))


@router.get("/payment-cancel", response_class=HTMLResponse)
async def payment_cancel() -> HTMLResponse:
    return HTMLResponse(load_page("payment_cancel"))


@router.get("/privacy", response_class=HTMLResponse)
async def privacy() -> HTMLResponse:
    return HTMLResponse(load_page("privacy"))
