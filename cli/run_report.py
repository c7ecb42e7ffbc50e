# cli/run_report.py
"""
Runs the backup report pipeline from a workstation.

Credentials and settings come from the environment or a .env file, e.g.

    REGION=tr-west-1
    PROJECT_ID=0123456789abcdef
    HUAWEI_CLOUD_USERNAME=report-bot
    HUAWEI_CLOUD_PASSWORD=...
    HUAWEI_CLOUD_DOMAIN_NAME=my-domain
    SMTP_USER=reports@example.com
    SMTP_PASS=...
    VAULT_EMAILS={"vault-id": ["ops@example.com"]}
"""
import argparse
import os
import sys
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# The function directory is the deployed code root; its modules import each other flat
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "lambdas" / "backup_report"))

from app import handler, load_credentials, run_backup_report  # noqa: E402
from models import get_settings  # noqa: E402


class EnvironmentContext:
    """Stands in for the runtime context, user data is read from env vars."""

    def getUserData(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return os.environ.get(key, default)


class DryRunMailer:
    """Skips delivery and only reports what would have been sent."""

    def send_report(self, file_path, file_name, recipients) -> str:
        return f"Dry run: '{file_name}' ({file_path}) not sent to {', '.join(recipients)}"


def parse_as_of(value: str) -> datetime:
    """The pipeline reports on the day before --as-of, so pass the day after the wanted report."""
    return datetime.combine(date.fromisoformat(value), time(12, 0), tzinfo=timezone.utc)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Build and send the daily CBR backup reports.")
    parser.add_argument("--as-of", type=parse_as_of, default=None,
                        help="Run as if invoked on this date (YYYY-MM-DD). Reports cover the previous day.")
    parser.add_argument("--dry-run", action="store_true", help="Render reports but do not email them.")
    args = parser.parse_args(argv)

    # Load environment variables from a .env file for local runs
    load_dotenv()
    context = EnvironmentContext()

    if not (args.as_of or args.dry_run):
        print("--- Invoking handler with the environment context ---")
        result = handler({}, context)
        print(result["body"])
        return 0

    settings = get_settings()
    mailer = DryRunMailer() if args.dry_run else None
    try:
        sent_reports = run_backup_report(settings, load_credentials(context), mailer=mailer, now=args.as_of)
    except Exception as e:
        print(f"\n❌ Report run failed: {e}")
        return 1

    print(f"\n✅ Done. {len(sent_reports)} report(s) processed.")
    for file_name in sent_reports:
        print(f"  - {settings.report_dir / file_name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
