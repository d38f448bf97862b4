"""CELINE identity link reset CLI - Main entrypoint.

Usage:
    celine-linkreset status linkreset.yaml
    celine-linkreset run linkreset.yaml --dry-run
"""

from __future__ import annotations

import typer

from celine.linkreset.cli.commands import run, status

app = typer.Typer(
    name="celine-linkreset",
    help="Reset identity provider links between Keycloak realms",
    add_completion=True,
)

app.command("run")(run)
app.command("status")(status)


def create_app() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    create_app()
