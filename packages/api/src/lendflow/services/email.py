# This project was developed with assistance from AI tools.
"""Outbound email.

Delivery is an external collaborator. ``LoggingEmailSender`` is the default
implementation: it renders the subject line and logs the message instead of
talking to an SMTP relay.
"""

import logging

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "email_verification": "Verify your email address",
    "kyc_update": "Your KYC document was reviewed",
}


class EmailSender:
    """Interface for sending templated email."""

    async def send(self, to: str, template: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    def __init__(self, sender: str):
        self.sender = sender

    async def send(self, to: str, template: str, payload: dict) -> None:
        subject = _SUBJECTS.get(template, template)
        logger.info(
            "Email queued: from=%s to=%s template=%s subject=%r keys=%s",
            self.sender,
            to,
            template,
            subject,
            sorted(payload),
        )
