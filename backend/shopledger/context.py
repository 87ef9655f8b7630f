# Overview: Explicit per-request session context threaded into every core call.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .models.accounts import LANGUAGES


@dataclass(frozen=True)
class SessionContext:
    """
    Who is acting and how results should be rendered.

    The entitlement is not stored here: it depends on the clock, so
    callers resolve it per operation through `entitlement()`.
    """
    account_id: int
    locale: str = "en"

    def __post_init__(self):
        if self.locale not in LANGUAGES:
            object.__setattr__(self, "locale", "en")

    def entitlement(self, now: datetime | None = None):
        from .services.entitlement_service import resolve_for_account
        return resolve_for_account(self.account_id, now=now)


def open_session(account_id: int, locale: str | None = None) -> SessionContext:
    """Build a context for an existing account, defaulting to its saved language."""
    from .services.account_service import get_account
    account = get_account(account_id)
    return SessionContext(account_id=account.id, locale=locale or account.language)
