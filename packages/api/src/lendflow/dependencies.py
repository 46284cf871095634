# This project was developed with assistance from AI tools.
"""Process-wide service container and the FastAPI dependencies that read it.

The lifespan in ``main.py`` builds one ``AppServices`` and stores it on
``app.state.services``. Tests either build their own container or override
the individual dependencies below.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import Request
from lendflow_db import DatabaseService
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import Settings
from .services.email import EmailSender, LoggingEmailSender
from .services.notification import NotificationDispatcher
from .services.ownership import DocumentOwnershipVerifier
from .services.storage import StorageService


@dataclass
class AppServices:
    db: DatabaseService
    storage: StorageService
    verifier: DocumentOwnershipVerifier
    dispatcher: NotificationDispatcher
    mailer: EmailSender

    @classmethod
    def from_settings(cls, cfg: Settings) -> "AppServices":
        db = DatabaseService(cfg.DATABASE_URL, echo=cfg.SQL_ECHO)
        storage = StorageService.from_settings(cfg)
        mailer = LoggingEmailSender(cfg.EMAIL_FROM)
        return cls(
            db=db,
            storage=storage,
            verifier=DocumentOwnershipVerifier(storage),
            dispatcher=NotificationDispatcher(db.session_factory, mailer),
            mailer=mailer,
        )

    async def shutdown(self) -> None:
        await self.dispatcher.drain()
        await self.db.dispose()


def get_services(request: Request) -> AppServices:
    return request.app.state.services


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session from the application's database."""
    async for session in get_services(request).db.session():
        yield session


def get_storage(request: Request) -> StorageService:
    return get_services(request).storage


def get_verifier(request: Request) -> DocumentOwnershipVerifier:
    return get_services(request).verifier


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return get_services(request).dispatcher
