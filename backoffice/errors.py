"""Error taxonomy for onboarding row editing and store access."""
from __future__ import annotations

from typing import Optional


class BackofficeError(Exception):
    """Base class for errors raised by the back-office service."""


class ValidationError(BackofficeError):
    """A row payload is missing required fields or carries bad values.

    Raised before any store interaction, so a rejected row never reaches the
    sync coordinator.
    """

    def __init__(self, category: str, message: str) -> None:
        super().__init__(f"{category}: {message}")
        self.category = category
        self.message = message


class UnknownRecord(BackofficeError):
    def __init__(self, category: str, local_key: str) -> None:
        super().__init__(f"No {category} row with key {local_key}")
        self.category = category
        self.local_key = local_key


class RemoteStoreError(BackofficeError):
    """Base class for failures talking to the remote table store."""

    def __init__(
        self,
        action: str,
        detail: str,
        *,
        table: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        label = f" (table={table})" if table else ""
        super().__init__(f"Supabase {action} failed{label}: {detail}")
        self.action = action
        self.detail = detail
        self.table = table
        self.status_code = status_code


class RemoteUnavailable(RemoteStoreError):
    """Network failure or an error status from the store."""


class NotFound(RemoteStoreError):
    """The store no longer recognizes the referenced server id."""
