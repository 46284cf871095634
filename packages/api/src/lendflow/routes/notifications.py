# This project was developed with assistance from AI tools.
"""In-app notification inbox for the current user."""

from fastapi import APIRouter, Depends, Query
from lendflow_db.enums import NotificationStatus
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db
from ..middleware.auth import CurrentUser
from ..schemas import Pagination
from ..schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from ..services import notification as notification_service

router = APIRouter()


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    filter_status: NotificationStatus | None = Query(default=None, alias="status"),
) -> NotificationListResponse:
    items, total, unread = await notification_service.list_notifications(
        session, user, offset=offset, limit=limit, status=filter_status
    )
    return NotificationListResponse(
        data=[NotificationResponse.model_validate(n) for n in items],
        pagination=Pagination.build(total, offset, limit),
        unread_count=unread,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    updated = await notification_service.mark_all_as_read(session, user)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await notification_service.mark_as_read(session, user, notification_id)
    return NotificationResponse.model_validate(notification)
