"""Domain models for the identity link reset."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

DELETE_IDENTITY = "delete_identity"
REMOVE_LINK = "remove_link"


@dataclass(frozen=True)
class Identity:
    """A user account in a realm."""

    id: str
    username: str

    @classmethod
    def from_representation(cls, data: dict[str, Any]) -> "Identity":
        """Build from a Keycloak UserRepresentation."""
        return cls(id=data["id"], username=data.get("username", ""))


@dataclass(frozen=True)
class FederationLink:
    """Association of a local identity to an identity provider."""

    username: str
    provider: str

    def __str__(self) -> str:
        return f"{self.username} {self.provider}"


@dataclass(frozen=True)
class ItemResult:
    """Result of one mutating operation on a single item.

    Attributes:
        operation: DELETE_IDENTITY or REMOVE_LINK.
        username:  Username of the identity the operation targeted.
        provider:  Identity provider alias, only set for REMOVE_LINK.
        error:     Failure cause, None on success.
    """

    operation: str
    username: str
    provider: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def link(self) -> FederationLink:
        return FederationLink(username=self.username, provider=self.provider or "")


@dataclass(frozen=True)
class SweepResult:
    """Ordered, immutable results of one sweep over a realm."""

    realm: str
    results: tuple[ItemResult, ...] = ()

    @property
    def succeeded(self) -> tuple[ItemResult, ...]:
        return tuple(r for r in self.results if r.ok)

    @property
    def failed(self) -> tuple[ItemResult, ...]:
        return tuple(r for r in self.results if not r.ok)


@dataclass(frozen=True)
class RunOutcome:
    """What a run removed (or would remove, when simulating)."""

    idp_realm: str
    application_realm: str
    simulated: bool = False
    deleted_identities: tuple[str, ...] = ()
    deleted_links: tuple[FederationLink, ...] = ()
    failures: tuple[ItemResult, ...] = ()

    @classmethod
    def from_sweeps(
        cls,
        identities: SweepResult,
        links: SweepResult,
        simulated: bool = False,
    ) -> "RunOutcome":
        """Combine the identity sweep and the link sweep into one outcome."""
        return cls(
            idp_realm=identities.realm,
            application_realm=links.realm,
            simulated=simulated,
            deleted_identities=tuple(r.username for r in identities.succeeded),
            deleted_links=tuple(r.link for r in links.succeeded),
            failures=identities.failed + links.failed,
        )


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable snapshot of what a run targets."""

    idp_realm: str
    application_realm: str
    client_realm: str
    ceiling: int
    simulate: bool = True


class IdentityDirectory(Protocol):
    """Operations the engine needs from an identity directory."""

    def count_users(self, realm: str) -> int: ...

    def list_users(self, realm: str, first: int, max: int) -> list[Identity]: ...

    def delete_user(self, realm: str, user_id: str) -> None: ...

    def list_federated_identities(
        self, realm: str, user_id: str, username: str | None = None
    ) -> list[FederationLink]: ...

    def remove_federated_identity(
        self, realm: str, user_id: str, provider: str
    ) -> None: ...
