"""
Shared request dependencies
"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from medevents.core.db import get_db
from medevents.core.identity import ANONYMOUS, Caller
from medevents.services.certificate_issuer import build_issuer
from medevents.services.notifier import Notifier
from medevents.services.outbox import OutboxDispatcher
from medevents.services.repositories import UserRepo
from medevents.utils.responses import rate_limit_error
from medevents.utils.security import get_client_ip, rate_limit_check

def get_caller(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Caller:
    """Resolve the caller from the X-User-Id header set by the auth gateway"""
    if not x_user_id:
        return ANONYMOUS
    if not x_user_id.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user id")

    user = UserRepo.get(db, int(x_user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return Caller(user_id=user.id, role=user.role)

def get_dispatcher(db: Session = Depends(get_db)) -> OutboxDispatcher:
    return OutboxDispatcher(build_issuer(db), Notifier(db))

def rate_limited(request: Request) -> None:
    if not rate_limit_check(get_client_ip(request)):
        rate_limit_error()
