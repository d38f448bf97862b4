"""Upper bound on how many identities a run may touch."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from celine.linkreset.models import RunOutcome


class CeilingExceeded(Exception):
    """A realm holds more identities than the run is allowed to process."""

    def __init__(
        self,
        realm: str,
        count: int,
        ceiling: int,
        partial: RunOutcome | None = None,
    ):
        super().__init__(
            f"There are {count} users in realm {realm}, "
            f"but this application can process only {ceiling}."
        )
        self.realm = realm
        self.count = count
        self.ceiling = ceiling
        # What the run already did before it was refused, if anything
        self.partial = partial


def check_ceiling(realm: str, actual_count: int, ceiling: int) -> None:
    """Raise CeilingExceeded when actual_count is above ceiling.

    A count equal to the ceiling is allowed.
    """
    if actual_count > ceiling:
        raise CeilingExceeded(realm, actual_count, ceiling)
