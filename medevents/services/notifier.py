"""
Notification side effects: email via SMTP and push via Firebase Cloud Messaging
"""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from medevents.core.config import settings
from medevents.core.email_service import EmailService, email_service
from medevents.services import email_templates
from medevents.services.firebase_client import send_push
from medevents.services.outbox import (
    NOTIFY_CERTIFICATE_FAILED,
    NOTIFY_CERTIFICATE_ISSUED,
    NOTIFY_FEEDBACK_INVITE,
)
from medevents.services.repositories import EventRepo, UserRepo

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers outbox notifications. Never raises; failures are logged."""

    def __init__(self, db: Session, mailer: EmailService = None):
        self.db = db
        self.mailer = mailer or email_service

    def notify(self, kind: str, payload: Dict[str, Any]) -> None:
        handler = {
            NOTIFY_CERTIFICATE_ISSUED: self._certificate_issued,
            NOTIFY_CERTIFICATE_FAILED: self._certificate_failed,
            NOTIFY_FEEDBACK_INVITE: self._feedback_invite,
        }.get(kind)
        if handler is None:
            logger.warning(f"No notification handler for {kind}")
            return
        try:
            handler(payload)
        except Exception:
            logger.exception(f"Notification {kind} failed | payload={payload}")

    def _send(self, kind: str, to_email: str, **context) -> bool:
        subject = email_templates.SUBJECTS[kind].format(**context)
        html = email_templates.render(kind, from_name=settings.FROM_NAME, **context)
        return self.mailer.send_email([to_email], subject, html)

    def _certificate_issued(self, payload: Dict[str, Any]) -> None:
        user = UserRepo.get(self.db, payload["user_id"])
        event = EventRepo.get(self.db, payload["event_id"])
        if user is None or event is None:
            return

        if user.fcm_token:
            send_push(
                user.fcm_token,
                title="Certificate ready",
                body=f"Your certificate for {event.title} is ready.",
                data={"type": "certificate", "certificate_id": payload["certificate_id"], "event_id": event.id},
            )
        if payload.get("send_email") and user.email:
            self._send(
                NOTIFY_CERTIFICATE_ISSUED,
                user.email,
                user_name=user.name,
                event_title=event.title,
                certificate_id=payload["certificate_id"],
            )

    def _certificate_failed(self, payload: Dict[str, Any]) -> None:
        if not settings.OPS_EMAIL:
            return
        self._send(
            NOTIFY_CERTIFICATE_FAILED,
            settings.OPS_EMAIL,
            event_id=payload.get("event_id"),
            user_id=payload.get("user_id"),
            booking_id=payload.get("booking_id"),
            template_id=payload.get("template_id"),
            workflow=payload.get("workflow"),
            error=payload.get("error"),
        )

    def _feedback_invite(self, payload: Dict[str, Any]) -> None:
        user = UserRepo.get(self.db, payload["user_id"])
        event = EventRepo.get(self.db, payload["event_id"])
        if user is None or event is None or not user.email:
            return
        feedback_url = f"{settings.BASE_URL}/feedback/event/{event.id}"
        self._send(
            NOTIFY_FEEDBACK_INVITE,
            user.email,
            user_name=user.name,
            event_title=event.title,
            feedback_url=feedback_url,
        )
