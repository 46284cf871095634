# This project was developed with assistance from AI tools.
"""Current-user profile and email verification."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db, get_dispatcher
from ..middleware.auth import CurrentUser
from ..schemas.profile import UserResponse
from ..services import users as user_service
from ..services.notification import NotificationDispatcher

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser, session: AsyncSession = Depends(get_db)) -> UserResponse:
    """The caller's account with its role-specific profile.

    The first authenticated call creates the local account from the token claims.
    """
    account = await user_service.provision_account(session, user)
    return user_service.to_user_response(account)


@router.put("/me", response_model=UserResponse)
async def update_me(
    user: CurrentUser,
    changes: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> UserResponse:
    """Edit name, phone and the fields of the caller's role profile.

    Accepted fields depend on the role; anything else is a 400.
    """
    account = await user_service.update_profile(session, user, changes, dispatcher)
    return user_service.to_user_response(account)


@router.post("/verify-email", response_model=UserResponse)
async def verify_email(
    token: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Consume an emailed verification token. No authentication required."""
    account = await user_service.verify_email(session, token)
    return user_service.to_user_response(account)
