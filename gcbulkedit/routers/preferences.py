"""Extension UI preferences: opaque settings blob stored on the customer."""

from fastapi import APIRouter, Query

from gcbulkedit.dependencies import Ledger
from gcbulkedit.models import OperationResult, PreferencesResponse, PreferencesUpdate

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("", response_model=PreferencesResponse, summary="Get stored preferences")
async def get_preferences(
    ledger: Ledger,
    email: str | None = Query(None),
) -> PreferencesResponse:
    """Unknown emails get an empty blob; nothing is created."""
    return PreferencesResponse(preferences=await ledger.get_preferences(email))


@router.post(
    "",
    response_model=OperationResult,
    response_model_exclude_none=True,
    summary="Replace stored preferences",
)
async def save_preferences(body: PreferencesUpdate, ledger: Ledger) -> OperationResult:
    await ledger.set_preferences(body.email, body.preferences)
    return OperationResult(success=True)
