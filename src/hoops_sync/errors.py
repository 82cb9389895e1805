"""Error kinds raised by the ingestion and sync pipeline.

None of these are retried; each one is terminal for the operation that raised it.
"""

from __future__ import annotations

from typing import Any, Optional


class HoopsSyncError(Exception):
    """Base class for pipeline errors."""


class ConfigError(HoopsSyncError, ValueError):
    pass


class RemoteApiError(HoopsSyncError):
    """The remote store answered with a non-zero ``code``."""

    def __init__(self, code: Any, msg: Optional[str], operation: str = "request") -> None:
        self.code = code
        self.msg = msg or ""
        self.operation = operation
        super().__init__(f"{operation} failed: code={code} msg={self.msg}")


class TokenAcquisitionError(RemoteApiError):
    def __init__(self, code: Any, msg: Optional[str]) -> None:
        super().__init__(code, msg, operation="tenant_access_token")
        self.args = (f"Failed to acquire tenant access token: {self.msg}",)


class InsertFailedError(RemoteApiError):
    def __init__(self, code: Any, msg: Optional[str]) -> None:
        super().__init__(code, msg, operation="batch_create")
        self.args = (f"Failed to insert records: {self.msg}",)


class DuplicateGameError(HoopsSyncError):
    def __init__(self, match_id: Any, table_id: str = "") -> None:
        self.match_id = match_id
        self.table_id = table_id
        super().__init__(
            f"Records for match id {match_id} already exist; "
            "contact an administrator to delete the existing data before uploading again."
        )


class InvalidCredentialsError(HoopsSyncError):
    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class SessionExpiredOrInvalid(HoopsSyncError):
    def __init__(self) -> None:
        super().__init__("Not logged in or session expired; please log in again")


class GameDocumentError(HoopsSyncError, ValueError):
    """The game document does not have the shape the mapper expects."""
