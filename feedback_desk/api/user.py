"""User API routes for Feedback Desk."""

from fastapi import APIRouter

from ..core.dependencies import CurrentUserDep
from ..schemas import UserRef

router = APIRouter(prefix="/me", tags=["user"])


@router.get("", response_model=UserRef)
async def get_me(current_user: CurrentUserDep):
    """The caller's directory record: role and team affiliation."""
    return UserRef.model_validate(current_user)
