"""
Explicit caller identity passed into every pipeline entry point
"""

from dataclasses import dataclass
from typing import Optional

from medevents.core.config import settings


@dataclass(frozen=True)
class Caller:
    """Who is acting. ``user_id`` is None for anonymous submitters."""

    user_id: Optional[int] = None
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_privileged(self) -> bool:
        return self.is_authenticated and self.role in settings.PRIVILEGED_ROLES


ANONYMOUS = Caller()
