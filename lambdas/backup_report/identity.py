# lambdas/backup_report/identity.py
from typing import Optional

import requests

from models import BackupReportError, Credentials, ReportSettings

# The IAM service returns the token in this response header, not in the body.
TOKEN_HEADER = "X-Subject-Token"


class AuthenticationError(BackupReportError):
    """Raised when a project scoped token cannot be obtained."""


def build_auth_request(credentials: Credentials, scope_name: str) -> dict:
    """Builds the password grant body for a project scoped token."""
    return {
        "auth": {
            "identity": {
                "methods": ["password"],
                "password": {
                    "user": {
                        "name": credentials.username,
                        "password": credentials.password,
                        "domain": {"name": credentials.domain_name},
                    }
                },
            },
            "scope": {"project": {"name": scope_name}},
        }
    }


class IdentityClient:
    """
    Exchanges IAM user credentials for a short-lived bearer token.
    One token is requested per invocation, it is never cached or refreshed.
    """

    def __init__(self, settings: ReportSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def get_token(self, credentials: Credentials) -> str:
        """
        Requests a token scoped to the configured project.

        Returns:
            The bearer token string.

        Raises:
            AuthenticationError: On network errors, non-2xx responses or a
                response without the token header.
        """
        endpoint = self.settings.identity_url
        print(f"Requesting token for user '{credentials.username}' scoped to '{self.settings.scope_name}'...")

        try:
            response = self.session.post(
                endpoint,
                json=build_auth_request(credentials, self.settings.scope_name),
                headers={"Content-Type": "application/json"},
                timeout=self.settings.http_timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            print(f"❌ Failed to obtain token from {endpoint}: {e}")
            raise AuthenticationError("Token could not be obtained.") from e

        token = response.headers.get(TOKEN_HEADER)
        if not token:
            print(f"❌ Token response from {endpoint} has no '{TOKEN_HEADER}' header.")
            raise AuthenticationError("Token could not be obtained.")

        print("✅ Token obtained.")
        return token
