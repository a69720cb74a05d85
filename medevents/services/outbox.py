"""
Outbox actions and their dispatcher.

Pipeline components return the side effects they want (issue a certificate,
notify someone) instead of performing them. The dispatcher executes them after
the triggering request's own work is committed, logs every failure with full
context and never lets one escape to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from medevents.exceptions import IssuerFailure

logger = logging.getLogger(__name__)

NOTIFY_CERTIFICATE_ISSUED = "certificate_issued"
NOTIFY_CERTIFICATE_FAILED = "certificate_failed"
NOTIFY_FEEDBACK_INVITE = "feedback_invite"


@dataclass(frozen=True)
class IssueCertificate:
    event_id: int
    user_id: int
    booking_id: Optional[int]
    template_id: str
    send_email: bool
    workflow: str
    flags: Dict[str, Any] = field(default_factory=dict)

    def context(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "booking_id": self.booking_id,
            "template_id": self.template_id,
            "workflow": self.workflow,
            "flags": self.flags,
        }


@dataclass(frozen=True)
class Notify:
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)


Action = Union[IssueCertificate, Notify]


@dataclass
class DispatchReport:
    issued: List[str] = field(default_factory=list)
    already_issued: List[str] = field(default_factory=list)
    issuer_failures: List[Dict[str, Any]] = field(default_factory=list)
    notifications_sent: int = 0
    notification_failures: int = 0

    @property
    def certificate_issued(self) -> bool:
        return bool(self.issued)

    @property
    def failed(self) -> bool:
        return bool(self.issuer_failures)


class OutboxDispatcher:
    def __init__(self, issuer, notifier):
        self.issuer = issuer
        self.notifier = notifier

    def dispatch(self, actions: List[Action]) -> DispatchReport:
        report = DispatchReport()
        for action in actions:
            if isinstance(action, IssueCertificate):
                self._issue(action, report)
            elif isinstance(action, Notify):
                self._notify(action, report)
            else:
                logger.error(f"Unknown outbox action dropped: {action!r}")
        return report

    def _issue(self, action: IssueCertificate, report: DispatchReport) -> None:
        try:
            result = self.issuer.issue(
                event_id=action.event_id,
                user_id=action.user_id,
                booking_id=action.booking_id,
                template_id=action.template_id,
                send_email=action.send_email,
                workflow=action.workflow,
            )
        except IssuerFailure as e:
            context = action.context()
            logger.error(f"Certificate issuance failed: {e.message} | context={context}")
            report.issuer_failures.append({**context, "error": e.message})
            self._notify(Notify(NOTIFY_CERTIFICATE_FAILED, {**context, "error": e.message}), report)
            return
        except Exception as e:
            context = action.context()
            logger.exception(f"Unexpected error while issuing certificate | context={context}")
            report.issuer_failures.append({**context, "error": str(e)})
            self._notify(Notify(NOTIFY_CERTIFICATE_FAILED, {**context, "error": str(e)}), report)
            return

        certificate_id = result.certificate_id
        if not result.created:
            logger.info(
                f"User {action.user_id} already holds certificate {certificate_id} for event {action.event_id}; "
                f"nothing sent for {action.workflow}"
            )
            report.already_issued.append(certificate_id)
            return

        logger.info(
            f"Certificate {certificate_id} issued for event {action.event_id}, user {action.user_id} "
            f"via {action.workflow}"
        )
        report.issued.append(certificate_id)
        self._notify(
            Notify(NOTIFY_CERTIFICATE_ISSUED, {
                "event_id": action.event_id,
                "user_id": action.user_id,
                "certificate_id": certificate_id,
                "send_email": action.send_email,
            }),
            report,
        )

    def _notify(self, action: Notify, report: DispatchReport) -> None:
        try:
            self.notifier.notify(action.kind, action.payload)
            report.notifications_sent += 1
        except Exception:
            logger.exception(f"Notifier raised for {action.kind}; continuing")
            report.notification_failures += 1
