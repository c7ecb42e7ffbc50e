# tests/conftest.py
from unittest.mock import MagicMock

import pytest

from models import LogRecord, ReportSettings


def make_settings(**overrides) -> ReportSettings:
    """Builds settings without touching a local .env file."""
    values = {
        "REGION": "tr-west-1",
        "PROJECT_ID": "proj-123",
        "SMTP_USER": "reports@example.com",
        "SMTP_PASS": "smtp-secret",
    }
    values.update(overrides)
    return ReportSettings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> ReportSettings:
    return make_settings(
        REPORT_DIR=tmp_path,
        VAULT_EMAILS={"v1": ["a@x.com"], "v2": ["b@x.com"]},
    )


@pytest.fixture
def raw_log():
    """Factory for operation log entries as the CBR API returns them."""
    def _make(**overrides) -> dict:
        log = {
            "id": "log-1",
            "operation_type": "backup",
            "status": "success",
            "vault_id": "v1",
            "vault_name": "prod-vault",
            "started_at": "2024-01-01T10:00:00Z",
            "ended_at": "2024-01-01T10:05:30Z",
            "extra_info": {
                "common": {"task_id": "task-1"},
                "backup": {"backup_id": "backup-1"},
                "resource": {"id": "ecs-1", "name": "web-01", "type": "OS::Nova::Server"},
            },
        }
        log.update(overrides)
        return log
    return _make


@pytest.fixture
def make_record():
    def _make(**overrides) -> LogRecord:
        values = dict(
            TaskID="task-1",
            BackupID="backup-1",
            TaskType="backup",
            Status="success",
            ResourceID="ecs-1",
            ResourceName="web-01",
            ResourceType="OS::Nova::Server",
            VaultID="v1",
            VaultName="prod-vault",
            Started="2024-01-01T13:00:00",
            Ended="2024-01-01T13:05:30",
        )
        values.update(overrides)
        return LogRecord(**values)
    return _make


@pytest.fixture
def http_response():
    """Factory for a fake requests.Response."""
    def _make(json_body=None, headers=None, error=None) -> MagicMock:
        response = MagicMock()
        response.json.return_value = json_body
        response.headers = headers or {}
        if error is not None:
            response.raise_for_status.side_effect = error
        return response
    return _make
