"""Human-readable summary of a run."""

from __future__ import annotations

from celine.linkreset.models import RunOutcome


def render(outcome: RunOutcome) -> str:
    """Render the outcome of a run as text.

    Lists deleted users, then deleted links, in processing order. Both
    sections are always present, even when empty.
    """
    lines = []

    if outcome.simulated:
        lines.append("[DRY RUN] No changes applied")

    lines.append(
        f"Deleted {len(outcome.deleted_identities)} users in realm {outcome.idp_realm}:"
    )
    lines.extend(outcome.deleted_identities)

    lines.append("")
    lines.append(
        f"Deleted {len(outcome.deleted_links)} federated links "
        f"from {outcome.application_realm} to {outcome.idp_realm}:"
    )
    lines.extend(str(link) for link in outcome.deleted_links)

    if outcome.failures:
        lines.append("")
        lines.append(f"Failed {len(outcome.failures)} operations:")
        for failure in outcome.failures:
            target = failure.username
            if failure.provider:
                target = f"{target} {failure.provider}"
            lines.append(f"  ! {failure.operation} {target}: {failure.error}")

    return "\n".join(lines)
