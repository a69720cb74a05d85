"""
Certificate issuer adapters.

Both adapters are idempotent per (event, user): the local ledger's unique
constraint is the single source of truth, and a repeat request returns the
certificate that already exists.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import requests
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medevents.core.config import settings
from medevents.exceptions import IssuerFailure
from medevents.models import Certificate
from medevents.services.repositories import CertificateRepo

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    digits = ""
    while number:
        number, rem = divmod(number, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def generate_certificate_id() -> str:
    """Human friendly id, e.g. CERT-LZ3K9Q1A-7GQ2XB"""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"CERT-{timestamp}-{random_part}"


@dataclass(frozen=True)
class IssuedCertificate:
    """``created`` is False when the ledger already held a certificate for the pair"""

    certificate_id: str
    created: bool


class CertificateIssuer(Protocol):
    def issue(
        self,
        event_id: int,
        user_id: int,
        booking_id: Optional[int],
        template_id: str,
        send_email: bool,
        workflow: str,
    ) -> IssuedCertificate:
        ...


def record_certificate(
    db: Session,
    certificate_id: str,
    event_id: int,
    user_id: int,
    booking_id: Optional[int],
    template_id: str,
    send_email: bool,
    workflow: str,
) -> Tuple[Certificate, bool]:
    """Insert into the ledger, or return the row a concurrent caller wrote first.

    The flag tells whether this call created the row.
    """
    existing = CertificateRepo.find(db, event_id, user_id)
    if existing:
        return existing, False
    try:
        certificate = CertificateRepo.insert(
            db,
            certificate_id=certificate_id,
            event_id=event_id,
            user_id=user_id,
            booking_id=booking_id,
            template_id=template_id,
            send_email=send_email,
            workflow=workflow,
        )
        return certificate, True
    except IntegrityError:
        db.rollback()
        winner = CertificateRepo.find(db, event_id, user_id)
        if winner is None:
            raise
        return winner, False


class LocalCertificateIssuer:
    """Issues certificates straight into the local ledger"""

    def __init__(self, db: Session):
        self.db = db

    def issue(self, event_id, user_id, booking_id, template_id, send_email, workflow) -> IssuedCertificate:
        try:
            certificate, created = record_certificate(
                self.db,
                generate_certificate_id(),
                event_id,
                user_id,
                booking_id,
                template_id,
                send_email,
                workflow,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise IssuerFailure(f"Failed to save certificate: {e}") from e
        return IssuedCertificate(certificate.certificate_id, created)


class HttpCertificateIssuer:
    """Delegates issuance to an external certificate service over HTTP"""

    def __init__(self, url: str, db: Session, timeout: int = None):
        self.url = url
        self.db = db
        self.timeout = timeout or settings.ISSUER_TIMEOUT_SECONDS

    def issue(self, event_id, user_id, booking_id, template_id, send_email, workflow) -> IssuedCertificate:
        existing = CertificateRepo.find(self.db, event_id, user_id)
        if existing:
            return IssuedCertificate(existing.certificate_id, False)

        payload = {
            "eventId": event_id,
            "userId": user_id,
            "bookingId": booking_id,
            "templateId": template_id,
            "sendEmail": send_email,
        }
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise IssuerFailure(f"Certificate service unreachable: {e}") from e

        if not response.ok:
            raise IssuerFailure(
                f"Certificate service returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise IssuerFailure("Certificate service returned invalid JSON") from e
        certificate_id = body.get("certificateId") or (body.get("certificate") or {}).get("id")
        if not certificate_id:
            raise IssuerFailure("Certificate service response has no certificate id")

        try:
            certificate, created = record_certificate(
                self.db, str(certificate_id), event_id, user_id, booking_id, template_id, send_email, workflow
            )
        except SQLAlchemyError as e:
            # The certificate exists remotely; the ledger will catch up on the next idempotent call
            self.db.rollback()
            logger.error(f"Issued certificate {certificate_id} but could not record it locally: {e}")
            return IssuedCertificate(str(certificate_id), True)
        return IssuedCertificate(certificate.certificate_id, created)


def build_issuer(db: Session) -> CertificateIssuer:
    if settings.CERTIFICATE_ISSUER_URL:
        return HttpCertificateIssuer(settings.CERTIFICATE_ISSUER_URL, db)
    return LocalCertificateIssuer(db)
