"""Keycloak Admin API access."""

from celine.linkreset.keycloak.client import (
    KeycloakAdminClient,
    KeycloakAuthError,
    KeycloakError,
    KeycloakNotFoundError,
)

__all__ = [
    "KeycloakAdminClient",
    "KeycloakAuthError",
    "KeycloakError",
    "KeycloakNotFoundError",
]
