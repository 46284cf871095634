# This project was developed with assistance from AI tools.
"""User notifications.

``NotificationDispatcher`` fans messages out on background asyncio tasks:
``notify`` and ``send_email`` return immediately, never raise into the
caller, and a failed delivery is logged once and not retried. Read and
mark-as-read paths run on the request session like every other service.
"""

import asyncio
import logging
from collections.abc import Coroutine, Iterable

from lendflow_db import Notification
from lendflow_db.enums import NotificationStatus
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import ForbiddenError, NotFoundError
from ..schemas.auth import UserContext
from .email import EmailSender

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Best-effort, fire-and-forget delivery of in-app notifications and email."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], mailer: EmailSender):
        self._session_factory = session_factory
        self._mailer = mailer
        self._tasks: set[asyncio.Task] = set()

    def notify(self, user_ids: Iterable[str], notification_type: str, message: str) -> None:
        """Schedule one notification row per distinct recipient."""
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not recipients:
            return
        self._spawn(
            self._deliver(recipients, notification_type, message),
            name=f"notify-{notification_type}",
        )

    def send_email(self, to: str | None, template: str, payload: dict) -> None:
        """Schedule an email. Missing address is a no-op."""
        if not to:
            return
        self._spawn(self._send_email(to, template, payload), name=f"email-{template}")

    async def drain(self) -> None:
        """Wait for every scheduled delivery (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _spawn(self, coro: Coroutine, *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, recipients: list[str], notification_type: str, message: str) -> None:
        try:
            async with self._session_factory() as session:
                for user_id in recipients:
                    await create_notification(session, user_id, notification_type, message)
                await session.commit()
        except Exception:
            logger.exception(
                "Notification delivery failed: type=%s recipients=%s",
                notification_type,
                recipients,
            )

    async def _send_email(self, to: str, template: str, payload: dict) -> None:
        try:
            await self._mailer.send(to, template, payload)
        except Exception:
            logger.exception("Email delivery failed: template=%s to=%s", template, to)


async def create_notification(
    session: AsyncSession,
    user_id: str,
    notification_type: str,
    message: str,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        message=message,
        status=NotificationStatus.UNREAD,
    )
    session.add(notification)
    await session.flush()
    return notification


async def list_notifications(
    session: AsyncSession,
    user: UserContext,
    *,
    offset: int = 0,
    limit: int = 20,
    status: NotificationStatus | None = None,
) -> tuple[list[Notification], int, int]:
    """Return (page, total matching, unread count) for the current user."""
    base = select(Notification).where(Notification.user_id == user.user_id)
    if status is not None:
        base = base.where(Notification.status == status)

    total = (
        await session.execute(select(func.count()).select_from(base.subquery()))
    ).scalar() or 0
    unread = (
        await session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.user_id,
                Notification.status == NotificationStatus.UNREAD,
            )
        )
    ).scalar() or 0

    stmt = base.order_by(Notification.created_at.desc(), Notification.id.desc())
    result = await session.execute(stmt.offset(offset).limit(limit))
    return list(result.scalars().all()), total, unread


async def mark_as_read(
    session: AsyncSession,
    user: UserContext,
    notification_id: int,
) -> Notification:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != user.user_id:
        raise ForbiddenError("Cannot modify another user's notification")

    notification.status = NotificationStatus.READ
    await session.commit()
    return notification


async def mark_all_as_read(session: AsyncSession, user: UserContext) -> int:
    result = await session.execute(
        update(Notification)
        .where(
            Notification.user_id == user.user_id,
            Notification.status == NotificationStatus.UNREAD,
        )
        .values(status=NotificationStatus.READ)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount or 0
