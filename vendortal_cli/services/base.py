from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import AuthenticationError, VendorTalError


def utc_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")


class BaseService:
    """Shared state for services that mirror backend rows in memory.

    ``error`` holds the last human-readable failure so callers can show it
    next to whatever triggered it. Nothing is retried.
    """

    def __init__(self, client: VendorTalClient, user_id: Optional[str] = None) -> None:
        self.client = client
        self.user_id = user_id
        self.error: Optional[str] = None
        self._logger = logging.getLogger(type(self).__module__)

    def _require_user(self) -> str:
        if not self.user_id:
            raise AuthenticationError("User not authenticated")
        return self.user_id

    def _record_error(self, exc: VendorTalError, fallback: str) -> str:
        message = str(exc) or fallback
        self.error = message
        self._logger.error("%s: %s", fallback, message)
        return message
