"""
Google Calendar API authentication using a service account.
"""

from typing import Optional

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from ..domain.exceptions import AuthenticationError, TokenRefreshError


class GoogleAuthenticator:
    """
    Handles authentication with the Google Calendar API using a service account.

    The service account signs a JWT with its private key and exchanges it
    for a short-lived access token. Tokens are kept in memory and refreshed
    once they expire; nothing is written to disk.
    """

    # Required scope for free/busy queries and event creation
    SCOPES = ["https://www.googleapis.com/auth/calendar"]
    TOKEN_URI = "https://oauth2.googleapis.com/token"

    def __init__(self, client_email: str, private_key: str):
        """
        Initialize the authenticator.

        Args:
            client_email: Service account e-mail address
            private_key: PEM encoded service account private key
        """
        self.client_email = client_email
        self.private_key = private_key
        self._credentials: Optional[service_account.Credentials] = None

    def _build_credentials(self) -> service_account.Credentials:
        if not self.client_email or not self.private_key:
            raise AuthenticationError(
                "Google service account is not configured. "
                "Set GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY."
            )

        info = {
            "type": "service_account",
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": self.TOKEN_URI,
        }

        try:
            return service_account.Credentials.from_service_account_info(info, scopes=self.SCOPES)
        except ValueError as e:
            raise AuthenticationError(f"Invalid service account credentials: {e}") from e

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, refreshing it when needed.

        Args:
            force_refresh: Refresh even if the current token is still valid

        Returns:
            Access token string

        Raises:
            TokenRefreshError: If the token endpoint is unreachable
            AuthenticationError: If the credentials are rejected
        """
        if self._credentials is None:
            self._credentials = self._build_credentials()

        if force_refresh or not self._credentials.valid:
            try:
                self._credentials.refresh(Request())
            except google.auth.exceptions.TransportError as e:
                raise TokenRefreshError(f"Could not reach the Google token endpoint: {e}") from e
            except google.auth.exceptions.GoogleAuthError as e:
                raise AuthenticationError(f"Authentication failed: {e}") from e

        return self._credentials.token
