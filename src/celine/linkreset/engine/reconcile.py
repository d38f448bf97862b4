"""Reset of identity provider links between two realms.

After an identity provider rotates its subject identifiers, the users it
created in the federated realm no longer match the identities it asserts,
and the application realm still holds links to the stale users.

The reset runs two sweeps, in this order:

1. Identity purge: delete every user in the federated realm.
2. Link purge: in the application realm, remove every federated identity
   link whose provider is the federated realm.

Usernames in the application realm are left alone, so the next login
through the provider re-creates the link.

Every sweep first checks the realm's user count against the ceiling and
refuses to touch a realm that is above it. In simulation mode the mutating
calls are skipped but every result is recorded as if they had succeeded.
"""

from __future__ import annotations

import logging
from typing import Callable

from celine.linkreset.audit import AuditLogger
from celine.linkreset.engine.safety import CeilingExceeded, check_ceiling
from celine.linkreset.models import (
    DELETE_IDENTITY,
    REMOVE_LINK,
    Identity,
    IdentityDirectory,
    ItemResult,
    RunConfiguration,
    RunOutcome,
    SweepResult,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Runs the identity purge and link purge sweeps against a directory."""

    def __init__(
        self,
        directory: IdentityDirectory,
        config: RunConfiguration,
        audit: AuditLogger | None = None,
    ):
        self._directory = directory
        self._config = config
        self._audit = audit or AuditLogger(simulated=config.simulate)

    @property
    def config(self) -> RunConfiguration:
        return self._config

    def run(self) -> RunOutcome:
        """Run both sweeps and combine their results.

        Raises:
            CeilingExceeded: A realm is above the ceiling. When the link sweep
                is refused, the exception carries the identity sweep's outcome
                in `partial`.
        """
        identities = self.purge_identities()
        try:
            links = self.purge_orphaned_links()
        except CeilingExceeded as e:
            e.partial = RunOutcome.from_sweeps(
                identities,
                SweepResult(realm=self._config.application_realm),
                simulated=self._config.simulate,
            )
            raise
        return RunOutcome.from_sweeps(
            identities, links, simulated=self._config.simulate
        )

    # -------------------------------------------------------------------------
    # Sweeps
    # -------------------------------------------------------------------------

    def purge_identities(self) -> SweepResult:
        """Delete all users in the federated realm."""
        realm = self._config.idp_realm
        logger.info("Deleting all users in realm %s", realm)

        results = []
        for identity in self._users(realm):
            result = self._attempt(
                DELETE_IDENTITY,
                identity.username,
                lambda: self._directory.delete_user(realm, identity.id),
            )
            self._audit.log_result(realm, result)
            results.append(result)

        sweep = SweepResult(realm=realm, results=tuple(results))
        self._audit.log_sweep(
            "identity_sweep_done",
            realm,
            deleted=len(sweep.succeeded),
            failed=len(sweep.failed),
        )
        return sweep

    def purge_orphaned_links(self) -> SweepResult:
        """Remove links to the federated realm from application realm users."""
        realm = self._config.application_realm
        provider = self._config.idp_realm
        logger.info("Deleting all %s links in realm %s", provider, realm)

        results = []
        for identity in self._users(realm):
            try:
                links = self._directory.list_federated_identities(
                    realm, identity.id, username=identity.username
                )
            except Exception as e:
                # Without its links we cannot tell what to remove; skip the user
                self._audit.log_error(
                    realm, "list_links", identity.username, str(e) or type(e).__name__
                )
                continue

            for link in links:
                if link.provider != provider:
                    continue
                result = self._attempt(
                    REMOVE_LINK,
                    identity.username,
                    lambda: self._directory.remove_federated_identity(
                        realm, identity.id, link.provider
                    ),
                    provider=link.provider,
                )
                self._audit.log_result(realm, result)
                results.append(result)

        sweep = SweepResult(realm=realm, results=tuple(results))
        self._audit.log_sweep(
            "link_sweep_done",
            realm,
            removed=len(sweep.succeeded),
            failed=len(sweep.failed),
        )
        return sweep

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _users(self, realm: str) -> list[Identity]:
        """List the users of a realm after checking it is under the ceiling.

        Raises:
            CeilingExceeded: The realm holds more users than the ceiling.
        """
        ceiling = self._config.ceiling
        count = self._directory.count_users(realm)
        check_ceiling(realm, count, ceiling)

        users = self._directory.list_users(realm, first=0, max=ceiling)
        logger.info("Found %d users in realm %s", len(users), realm)
        return users

    def _attempt(
        self,
        operation: str,
        username: str,
        mutate: Callable[[], None],
        provider: str | None = None,
    ) -> ItemResult:
        """Run one mutating call, or skip it when simulating."""
        if not self._config.simulate:
            try:
                mutate()
            except Exception as e:
                return ItemResult(
                    operation=operation,
                    username=username,
                    provider=provider,
                    error=str(e) or type(e).__name__,
                )
        return ItemResult(operation=operation, username=username, provider=provider)
