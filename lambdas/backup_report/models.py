# lambdas/backup_report/models.py
"""
Settings and data models for the daily CBR backup report function.

Raw API payloads are decoded with pydantic models, the normalized report rows
are plain dataclasses.
"""
from dataclasses import astuple, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    SecretStr,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_IAM_ENDPOINT = "https://iam.{region}.myhuaweicloud.com/v3/auth/tokens"
_DEFAULT_CBR_ENDPOINT = "https://cbr.{region}.myhuaweicloud.com/v3/{project_id}/operation-logs"


class BackupReportError(Exception):
    """Base class for every failure of the report pipeline."""


class ReportSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is read as well, which is handy for cli/run_report.py.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    # Cloud target
    region: str = Field(..., alias='REGION')
    project_id: str = Field(..., alias='PROJECT_ID')
    project_name: Optional[str] = Field(None, alias='PROJECT_NAME')
    iam_endpoint: Optional[str] = Field(None, alias='IAM_ENDPOINT')
    cbr_endpoint: Optional[str] = Field(None, alias='CBR_ENDPOINT')
    http_timeout: float = Field(30.0, gt=0, alias='HTTP_TIMEOUT')

    # Report routing, vault id -> recipients. Key order is processing order.
    vault_emails: Dict[str, List[EmailStr]] = Field(default_factory=dict, alias='VAULT_EMAILS')
    vault_emails_file: Optional[Path] = Field(None, alias='VAULT_EMAILS_FILE')
    report_dir: Path = Field(Path("/tmp"), alias='REPORT_DIR')

    # Outbound mail relay
    smtp_host: str = Field("smtp.gmail.com", alias='SMTP_HOST')
    smtp_port: int = Field(587, ge=1, le=65535, alias='SMTP_PORT')
    smtp_user: EmailStr = Field(..., alias='SMTP_USER')
    smtp_pass: SecretStr = Field(..., alias='SMTP_PASS')
    smtp_sender: Optional[EmailStr] = Field(None, alias='SMTP_SENDER')
    smtp_use_tls: bool = Field(True, alias='SMTP_USE_TLS')
    smtp_use_ssl: bool = Field(False, alias='SMTP_USE_SSL')
    smtp_timeout: float = Field(20.0, gt=0, alias='SMTP_TIMEOUT')

    @model_validator(mode="after")
    def _check_smtp_security(self) -> "ReportSettings":
        if self.smtp_use_tls and self.smtp_use_ssl:
            raise ValueError("SMTP_USE_TLS and SMTP_USE_SSL are mutually exclusive.")
        return self

    @property
    def scope_name(self) -> str:
        return self.project_name or self.region

    @property
    def identity_url(self) -> str:
        return self.iam_endpoint or _DEFAULT_IAM_ENDPOINT.format(region=self.region)

    @property
    def operation_logs_url(self) -> str:
        return self.cbr_endpoint or _DEFAULT_CBR_ENDPOINT.format(
            region=self.region, project_id=self.project_id
        )

    @property
    def sender(self) -> str:
        return str(self.smtp_sender or self.smtp_user)


def get_settings() -> ReportSettings:
    """Builds a fresh settings object from the current environment."""
    return ReportSettings()


_VAULT_EMAIL_MAP = TypeAdapter(Dict[str, List[EmailStr]])


def load_vault_email_map(settings: ReportSettings) -> Dict[str, List[str]]:
    """
    Returns the vault id -> recipient list mapping.

    VAULT_EMAILS wins when it is set. Otherwise the YAML file named by
    VAULT_EMAILS_FILE is read; with neither, the mapping is empty.
    """
    if settings.vault_emails or not settings.vault_emails_file:
        return {vault_id: list(emails) for vault_id, emails in settings.vault_emails.items()}

    with open(settings.vault_emails_file, 'r') as f:
        raw_mapping = yaml.safe_load(f) or {}
    return {vault_id: list(emails) for vault_id, emails in _VAULT_EMAIL_MAP.validate_python(raw_mapping).items()}


@dataclass(frozen=True)
class Credentials:
    """Identity credentials handed in by the invocation context."""
    username: str
    password: str
    domain_name: str


@dataclass(frozen=True)
class TimeWindow:
    """The report window in wire format plus the date tag used for naming."""
    start_time: str
    end_time: str
    date_tag: str


# Raw operation log decoding.
# Every nested block of extra_info is optional upstream; a missing block or a
# JSON null decodes to an empty block whose fields are all None.

class _LenientModel(BaseModel):
    model_config = ConfigDict(extra='ignore')


class CommonInfo(_LenientModel):
    task_id: Optional[str] = None


class BackupInfo(_LenientModel):
    backup_id: Optional[str] = None


class ResourceInfo(_LenientModel):
    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None


class ExtraInfo(_LenientModel):
    common: CommonInfo = Field(default_factory=CommonInfo)
    backup: BackupInfo = Field(default_factory=BackupInfo)
    resource: ResourceInfo = Field(default_factory=ResourceInfo)

    @field_validator("common", "backup", "resource", mode="before")
    @classmethod
    def null_block_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class RawOperationLog(_LenientModel):
    """One entry of the operation_logs list returned by the CBR API."""
    id: str
    operation_type: Optional[str] = None
    started_at: str
    status: Optional[str] = None
    vault_id: Optional[str] = None
    vault_name: Optional[str] = None
    ended_at: Optional[str] = None
    extra_info: ExtraInfo = Field(default_factory=ExtraInfo)

    @field_validator("extra_info", mode="before")
    @classmethod
    def null_extra_info_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class OperationLogPage(_LenientModel):
    operation_logs: List[RawOperationLog]
    count: Optional[int] = None


@dataclass
class LogRecord:
    """
    A flat report row. Field order is the column order of the spreadsheet.
    Started/Ended hold shifted timestamps as "YYYY-MM-DDTHH:MM:SS".
    """
    TaskID: Optional[str]
    BackupID: Optional[str]
    TaskType: Optional[str]
    Status: Optional[str]
    ResourceID: Optional[str]
    ResourceName: Optional[str]
    ResourceType: Optional[str]
    VaultID: Optional[str]
    VaultName: Optional[str]
    Started: str
    Ended: Optional[str] = None

    def as_row(self) -> list:
        return list(astuple(self))
