"""
Error taxonomy for the report-based sync engine.

Every error here aborts the current domain sync. Rows already upserted
before the failure stay committed; re-running the sync overwrites them.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for every failure the sync engine surfaces to its caller."""


class CredentialsMissing(SyncError):
    """No Selling Partner credentials are stored for the tenant."""

    def __init__(self, tenant: int):
        self.tenant = tenant
        super().__init__(f"Amazon settings not configured for tenant {tenant}")


class AuthError(SyncError):
    """LwA refresh-token exchange was rejected."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Amazon token exchange failed ({status_code}): {body}")


class RetryExhausted(SyncError):
    """Still rate limited after the retry budget was spent."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"Rate limited on {path} after {attempts} attempts")


class SpApiError(SyncError):
    """Non-2xx, non-rate-limit response on an endpoint whose body we need."""

    def __init__(self, status_code: int, body: str, path: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.path = path
        where = f" on {path}" if path else ""
        super().__init__(f"SP-API error ({status_code}){where}: {body}")


class ReportFailed(SyncError):
    """Report job ended in CANCELLED or FATAL."""

    def __init__(self, report_id: str, status: str):
        self.report_id = report_id
        self.status = status
        super().__init__(f"Report {report_id} failed: {status}")


class ReportTimeout(SyncError):
    """Report job never reached DONE within the poll ceiling."""

    def __init__(self, report_id: str, attempts: int, interval: float):
        self.report_id = report_id
        self.attempts = attempts
        super().__init__(
            f"Report {report_id} did not complete within {int(attempts * interval)}s"
        )


class DecodeError(SyncError):
    """Downloaded document could not be decompressed or parsed."""
