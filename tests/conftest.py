"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from celine.linkreset.keycloak.client import KeycloakError
from celine.linkreset.models import FederationLink, Identity, RunConfiguration


class FakeDirectory:
    """In-memory identity directory that records every call.

    Deletions and link removals are applied, so a second run sees the
    effects of the first one.
    """

    def __init__(self):
        self.users: dict[str, list[Identity]] = {}
        self.links: dict[tuple[str, str], list[str]] = {}
        self.counts: dict[str, int] = {}
        self.fail_delete: set[str] = set()
        self.fail_remove: set[tuple[str, str]] = set()
        self.fail_list_links: set[str] = set()
        self.calls: list[tuple] = []
        # Any exception to raise, keyed like the recorded call
        self.exceptions: dict[tuple, Exception] = {}

    def add_user(self, realm: str, user_id: str, username: str, providers=()) -> None:
        self.users.setdefault(realm, []).append(Identity(id=user_id, username=username))
        self.links[(realm, user_id)] = list(providers)

    def authenticate(self) -> None:
        self.calls.append(("authenticate",))

    def _maybe_raise(self) -> None:
        exc = self.exceptions.get(self.calls[-1])
        if exc is not None:
            raise exc

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("delete_user", "remove_federated_identity")]

    def count_users(self, realm: str) -> int:
        self.calls.append(("count_users", realm))
        self._maybe_raise()
        if realm in self.counts:
            return self.counts[realm]
        return len(self.users.get(realm, []))

    def list_users(self, realm: str, first: int, max: int) -> list[Identity]:
        self.calls.append(("list_users", realm, first, max))
        return list(self.users.get(realm, []))[first:first + max]

    def delete_user(self, realm: str, user_id: str) -> None:
        self.calls.append(("delete_user", realm, user_id))
        self._maybe_raise()
        if user_id in self.fail_delete:
            raise KeycloakError(f"Unexpected response 500: cannot delete {user_id}", status_code=500)
        self.users[realm] = [u for u in self.users[realm] if u.id != user_id]

    def list_federated_identities(self, realm: str, user_id: str, username: str | None = None):
        self.calls.append(("list_federated_identities", realm, user_id))
        self._maybe_raise()
        if user_id in self.fail_list_links:
            raise KeycloakError("timed out")
        return [
            FederationLink(username=username or "", provider=p)
            for p in self.links.get((realm, user_id), [])
        ]

    def remove_federated_identity(self, realm: str, user_id: str, provider: str) -> None:
        self.calls.append(("remove_federated_identity", realm, user_id, provider))
        self._maybe_raise()
        if (user_id, provider) in self.fail_remove:
            raise KeycloakError(f"Unexpected response 500: cannot unlink {provider}", status_code=500)
        self.links[(realm, user_id)].remove(provider)


class FakeAuditLogger:
    def __init__(self):
        self.results = []
        self.sweeps = []
        self.errors = []

    def log_sweep(self, event, realm, **fields):
        self.sweeps.append((event, realm, fields))

    def log_result(self, realm, result):
        self.results.append((realm, result))

    def log_error(self, realm, operation, username, error):
        self.errors.append((realm, operation, username, error))


@pytest.fixture
def empty_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def directory(empty_directory: FakeDirectory) -> FakeDirectory:
    """Directory with the idp-x / app-y scenario."""
    d = empty_directory
    d.add_user("idp-x", "1", "alice")
    d.add_user("idp-x", "2", "bob")
    d.add_user("app-y", "c1", "carol", providers=["idp-x", "idp-z"])
    return d


@pytest.fixture
def audit() -> FakeAuditLogger:
    return FakeAuditLogger()


@pytest.fixture
def real_config() -> RunConfiguration:
    return RunConfiguration(
        idp_realm="idp-x",
        application_realm="app-y",
        client_realm="master",
        ceiling=10,
        simulate=False,
    )


@pytest.fixture
def dry_config(real_config: RunConfiguration) -> RunConfiguration:
    return RunConfiguration(
        idp_realm=real_config.idp_realm,
        application_realm=real_config.application_realm,
        client_realm=real_config.client_realm,
        ceiling=real_config.ceiling,
        simulate=True,
    )


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    """Write a complete config file and export its client secret."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LINKRESET_TEST_SECRET", "s3cret")
    for name in ("SERVER_URL", "USER_MAX", "REAL_RUN", "IDP_REALM"):
        monkeypatch.delenv(f"CELINE_LINKRESET_{name}", raising=False)

    path = tmp_path / "linkreset.yaml"
    path.write_text(
        "server_url: http://keycloak.test\n"
        "client_realm: master\n"
        "client_id: celine-linkreset\n"
        "client_secret_env: LINKRESET_TEST_SECRET\n"
        "idp_realm: idp-x\n"
        "application_realm: app-y\n"
        "real_run: false\n"
        "user_max: 10\n"
    )
    return path
