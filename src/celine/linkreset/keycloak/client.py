"""Keycloak Admin API client.

Wraps the parts of the Keycloak Admin REST API needed to reset identity links:
- User counting and listing
- User deletion
- Federated identity (identity provider link) listing and removal

Requests are blocking and issued one at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from celine.linkreset.config import LinkResetSettings
from celine.linkreset.models import FederationLink, Identity

logger = logging.getLogger(__name__)


class KeycloakError(Exception):
    """Base exception for Keycloak API errors."""

    def __init__(
        self, message: str, status_code: int | None = None, response: dict | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class KeycloakAuthError(KeycloakError):
    """Authentication failed."""

    pass


class KeycloakNotFoundError(KeycloakError):
    """Resource not found."""

    pass


@dataclass
class TokenInfo:
    """OAuth token information."""

    access_token: str
    expires_at: float

    def is_valid(self, leeway: int = 30) -> bool:
        """Check if token is still valid."""
        return time.time() < (self.expires_at - leeway)


class KeycloakAdminClient:
    """Client for the Keycloak Admin REST API, scoped per call to a realm."""

    def __init__(
        self,
        settings: LinkResetSettings,
        transport: httpx.BaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._token: TokenInfo | None = None
        self._client: httpx.Client | None = None

    def __enter__(self) -> "KeycloakAdminClient":
        self._client = httpx.Client(
            timeout=self._settings.timeout, transport=self._transport
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def settings(self) -> LinkResetSettings:
        """Get settings."""
        return self._settings

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def authenticate(self) -> None:
        """Obtain an access token with the client credentials grant."""
        secret = self._settings.client_secret
        if not secret:
            raise KeycloakAuthError(
                f"No client secret in ${self._settings.client_secret_env}"
            )

        data = {
            "grant_type": "client_credentials",
            "client_id": self._settings.client_id,
            "client_secret": secret,
        }

        logger.debug(
            "Authenticating with client credentials: %s@%s",
            self._settings.client_id,
            self._settings.client_realm,
        )

        try:
            response = self._client.post(self._settings.token_url, data=data)
        except httpx.HTTPError as e:
            raise KeycloakAuthError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            raise KeycloakAuthError(
                f"Client credentials authentication failed: {response.text}",
                status_code=response.status_code,
            )

        payload = response.json()
        self._token = TokenInfo(
            access_token=payload["access_token"],
            expires_at=time.time() + float(payload.get("expires_in", 300)),
        )
        logger.info("Authenticated as service client: %s", self._settings.client_id)

    def _ensure_token(self) -> str:
        """Ensure we have a valid token."""
        if not self._token or not self._token.is_valid():
            self.authenticate()
        return self._token.access_token

    def _headers(self) -> dict[str, str]:
        """Get request headers with auth token."""
        return {
            "Authorization": f"Bearer {self._ensure_token()}",
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def _request(
        self,
        method: str,
        realm: str,
        path: str,
        params: dict[str, Any] | None = None,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Make a request to the admin API of a realm."""
        url = f"{self._settings.admin_url(quote(realm, safe=''))}{path}"
        headers = self._headers()
        try:
            response = self._client.request(method, url, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise KeycloakError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response, expected_status)

    def _handle_response(
        self,
        response: httpx.Response,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Handle API response."""
        expected = expected_status or [200]

        if response.status_code == 404:
            raise KeycloakNotFoundError(
                f"Resource not found: {response.request.url}",
                status_code=404,
            )

        if response.status_code == 401:
            raise KeycloakAuthError(
                "Authentication expired or invalid",
                status_code=401,
            )

        if response.status_code not in expected:
            raise KeycloakError(
                f"Unexpected response {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def count_users(self, realm: str) -> int:
        """Count all users in a realm."""
        count = self._request("GET", realm, "/users/count")
        return int(count)

    def list_users(self, realm: str, first: int, max: int) -> list[Identity]:
        """List one page of users in a realm."""
        users = self._request(
            "GET",
            realm,
            "/users",
            params={"first": first, "max": max, "briefRepresentation": "true"},
        ) or []
        logger.debug("Found %d users in realm %s", len(users), realm)
        return [Identity.from_representation(u) for u in users]

    def delete_user(self, realm: str, user_id: str) -> None:
        """Delete a user."""
        logger.debug("Deleting user %s in realm %s", user_id, realm)
        self._request(
            "DELETE", realm, f"/users/{quote(user_id, safe='')}", expected_status=[200, 204]
        )

    # -------------------------------------------------------------------------
    # Federated identities
    # -------------------------------------------------------------------------

    def get_user(self, realm: str, user_id: str) -> dict[str, Any]:
        """Get a user representation by ID."""
        return self._request("GET", realm, f"/users/{quote(user_id, safe='')}")

    def list_federated_identities(
        self, realm: str, user_id: str, username: str | None = None
    ) -> list[FederationLink]:
        """List the identity provider links of a user.

        The links carry the local username. Pass it when known to save a
        lookup of the user.
        """
        links = self._request(
            "GET", realm, f"/users/{quote(user_id, safe='')}/federated-identity"
        ) or []
        if links and username is None:
            username = self.get_user(realm, user_id).get("username", "")
        return [
            FederationLink(username=username or "", provider=link["identityProvider"])
            for link in links
            if link.get("identityProvider")
        ]

    def remove_federated_identity(
        self, realm: str, user_id: str, provider: str
    ) -> None:
        """Remove the link between a user and an identity provider."""
        logger.debug(
            "Removing %s link from user %s in realm %s", provider, user_id, realm
        )
        self._request(
            "DELETE",
            realm,
            f"/users/{quote(user_id, safe='')}/federated-identity/{quote(provider, safe='')}",
            expected_status=[200, 204],
        )
