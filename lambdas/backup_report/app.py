# lambdas/backup_report/app.py
import json
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from identity import AuthenticationError, IdentityClient
from mailer import ReportMailer
from models import (
    Credentials,
    LogRecord,
    ReportSettings,
    get_settings,
    load_vault_email_map,
)
from operation_logs import OperationLogClient
from renderer import ReportRenderer
from time_window import compute_report_window

# Keys of the encrypted user data configured on the function
USERNAME_KEY = "HUAWEI_CLOUD_USERNAME"
PASSWORD_KEY = "HUAWEI_CLOUD_PASSWORD"
DOMAIN_NAME_KEY = "HUAWEI_CLOUD_DOMAIN_NAME"

SUCCESS_MESSAGE = "Reports successfully sent"


def load_credentials(context: Any) -> Credentials:
    """Reads the IAM credentials from the invocation context's user data."""
    values = {key: context.getUserData(key) for key in (USERNAME_KEY, PASSWORD_KEY, DOMAIN_NAME_KEY)}
    missing = [key for key, value in values.items() if not value]
    if missing:
        print(f"❌ Missing user data: {', '.join(missing)}")
        raise AuthenticationError(f"Missing credentials in user data: {', '.join(missing)}")

    return Credentials(
        username=values[USERNAME_KEY],
        password=values[PASSWORD_KEY],
        domain_name=values[DOMAIN_NAME_KEY],
    )


def build_report_filename(vault_id: str, date_tag: str) -> str:
    return f"Backup_Reports-{vault_id}-({date_tag}).xlsx"


def group_records_by_vault(records: Sequence[LogRecord]) -> Dict[str, List[LogRecord]]:
    """Partitions rows by VaultID, keeping the fetch order inside each vault."""
    grouped: Dict[str, List[LogRecord]] = defaultdict(list)
    for record in records:
        grouped[record.VaultID].append(record)
    return dict(grouped)


def send_vault_reports(
    records: Sequence[LogRecord],
    vault_emails: Mapping[str, Sequence[str]],
    date_tag: str,
    settings: ReportSettings,
    renderer: ReportRenderer,
    mailer: ReportMailer,
) -> List[str]:
    """
    Renders and emails one report per configured vault that has rows.
    Vaults are handled one at a time in vault_emails order; the first failure
    stops the whole run.

    Returns:
        The file names of the reports that were sent.
    """
    grouped = group_records_by_vault(records)
    sent_reports = []

    for vault_id, recipients in vault_emails.items():
        vault_records = grouped.get(vault_id)
        if not vault_records:
            print(f"ℹ️ No logs for vault '{vault_id}'. Skipping report.")
            continue

        file_name = build_report_filename(vault_id, date_tag)
        file_path = settings.report_dir / file_name
        print(f"Building report for vault '{vault_id}' with {len(vault_records)} rows...")

        renderer.render(vault_records, file_path)
        email_response = mailer.send_report(file_path, file_name, recipients)
        print(email_response)
        sent_reports.append(file_name)

    return sent_reports


def run_backup_report(
    settings: ReportSettings,
    credentials: Credentials,
    *,
    identity: Optional[IdentityClient] = None,
    log_client: Optional[OperationLogClient] = None,
    renderer: Optional[ReportRenderer] = None,
    mailer: Optional[ReportMailer] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Runs the full pipeline: authenticate, compute yesterday's window, fetch
    logs, then render and email each vault's report.
    Collaborators default to the real clients built from settings.
    """
    identity = identity or IdentityClient(settings)
    log_client = log_client or OperationLogClient(settings)
    renderer = renderer or ReportRenderer()
    mailer = mailer or ReportMailer(settings)

    # Step 1: Authenticate
    token = identity.get_token(credentials)

    # Step 2: Compute the report window
    window = compute_report_window(now)
    print(f"Report window: {window.start_time} - {window.end_time} (date tag {window.date_tag})")

    # Step 3: Fetch and normalize the logs
    records = log_client.fetch_backup_logs(token, window)

    # Step 4: Render and deliver per vault
    vault_emails = load_vault_email_map(settings)
    if not vault_emails:
        print("ℹ️ No vault recipients configured. Nothing to send.")
        return []

    return send_vault_reports(records, vault_emails, window.date_tag, settings, renderer, mailer)


def handler(event: Dict[str, Any], context: Any, callback: Optional[Callable[[Any, Any], None]] = None) -> Optional[dict]:
    """
    Timer triggered entry point. Sends yesterday's backup reports.

    When the runtime supplies a completion callback it receives
    (None, result) on success or (error, None) on failure. Without one,
    failures are re-raised so the invocation is recorded as failed.

    The success result is not the bare "Reports successfully sent" string
    but a response dict carrying it, the same shape the function returns:

        {"statusCode": 200,
         "body": '{"message": "Reports successfully sent", "reports": [...]}'}

    where "reports" lists the attachment file names that were mailed.
    """
    print("--- Backup Report Function Triggered ---")

    try:
        settings = get_settings()
        credentials = load_credentials(context)
        sent_reports = run_backup_report(settings, credentials)
    except Exception as e:
        print(f"❌ Operation failed: {e}")
        if callback is None:
            raise
        callback(e, None)
        return None

    result = {
        "statusCode": 200,
        "body": json.dumps({"message": SUCCESS_MESSAGE, "reports": sent_reports}),
    }
    print(f"✅ {SUCCESS_MESSAGE}: {len(sent_reports)} report(s).")
    if callback is not None:
        callback(None, result)
    return result
