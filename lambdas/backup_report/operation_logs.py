# lambdas/backup_report/operation_logs.py
from datetime import datetime, timezone
from typing import List, Optional

import requests
from pydantic import ValidationError

from models import (
    BackupReportError,
    LogRecord,
    OperationLogPage,
    RawOperationLog,
    ReportSettings,
    TimeWindow,
)
from time_window import DISPLAY_UTC_OFFSET

# Deletions are housekeeping, they never show up in a report.
EXCLUDED_OPERATION_TYPE = "delete"

REPORT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class LogFetchError(BackupReportError):
    """Raised when the operation logs cannot be fetched or decoded."""


def shift_timestamp(value: str) -> str:
    """
    Moves an API timestamp into the report timezone and drops fractional
    seconds and the zone marker, e.g. "2024-01-01T10:00:00Z" -> "2024-01-01T13:00:00".
    A value without zone information is taken as UTC.
    """
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    shifted = parsed.astimezone(timezone.utc) + DISPLAY_UTC_OFFSET
    return shifted.strftime(REPORT_TIMESTAMP_FORMAT)


def normalize_operation_log(log: RawOperationLog) -> LogRecord:
    """Flattens one decoded operation log into a report row."""
    extra = log.extra_info
    return LogRecord(
        # Logs without a task (e.g. some replication entries) fall back to the log id
        TaskID=extra.common.task_id or log.id,
        BackupID=extra.backup.backup_id,
        TaskType=log.operation_type,
        Status=log.status,
        ResourceID=extra.resource.id,
        ResourceName=extra.resource.name,
        ResourceType=extra.resource.type,
        VaultID=log.vault_id,
        VaultName=log.vault_name,
        Started=shift_timestamp(log.started_at),
        Ended=shift_timestamp(log.ended_at) if log.ended_at else None,
    )


class OperationLogClient:
    """
    Reads backup operation logs for one project from the CBR API.
    Only the first page is read, the API default covers a day's volume.
    """

    def __init__(self, settings: ReportSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def fetch_backup_logs(self, token: str, window: TimeWindow) -> List[LogRecord]:
        """
        Fetches the operation logs inside the window and normalizes them.

        Args:
            token: Bearer token from the IdentityClient.
            window: The report window.

        Returns:
            Report rows in API order, with delete operations removed.

        Raises:
            LogFetchError: On network errors, non-2xx responses or a body
                that cannot be decoded.
        """
        url = self.settings.operation_logs_url
        print(f"Fetching operation logs from {window.start_time} to {window.end_time}...")

        try:
            response = self.session.get(
                url,
                headers={
                    "Content-Type": "application/json",
                    "X-Auth-Token": token,
                },
                params={
                    "start_time": window.start_time,
                    "end_time": window.end_time,
                },
                timeout=self.settings.http_timeout,
            )
            response.raise_for_status()
            page = OperationLogPage.model_validate(response.json())
            records = [
                normalize_operation_log(log)
                for log in page.operation_logs
                if log.operation_type != EXCLUDED_OPERATION_TYPE
            ]
        except requests.exceptions.RequestException as e:
            print(f"❌ Failed to fetch logs from {url}: {e}")
            raise LogFetchError("Log fetch failed.") from e
        except (ValidationError, ValueError) as e:
            # ValueError also covers a non-JSON body and unparseable timestamps
            print(f"❌ Could not decode operation logs from {url}: {e}")
            raise LogFetchError("Log fetch failed.") from e

        if page.count is not None and page.count > len(page.operation_logs):
            print(f"⚠️ API reports {page.count} logs but returned {len(page.operation_logs)}. Later pages are not read.")

        print(f"✅ Fetched {len(page.operation_logs)} logs, {len(records)} kept after excluding deletions.")
        return records
