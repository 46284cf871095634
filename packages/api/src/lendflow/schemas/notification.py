# This project was developed with assistance from AI tools.
"""Notification schemas."""

from datetime import datetime

from lendflow_db.enums import NotificationStatus
from pydantic import BaseModel, ConfigDict

from . import Pagination


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    type: str
    message: str
    status: NotificationStatus
    created_at: datetime


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    pagination: Pagination
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
