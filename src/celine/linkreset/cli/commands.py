"""Link reset CLI commands.

Commands:
    celine-linkreset run [linkreset.yaml]
    celine-linkreset status [linkreset.yaml]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer

from celine.linkreset.audit import AuditLogger
from celine.linkreset.config import ConfigError, LinkResetSettings, load_settings
from celine.linkreset.engine import CeilingExceeded, ReconciliationEngine, render
from celine.linkreset.keycloak.client import (
    KeycloakAdminClient,
    KeycloakAuthError,
    KeycloakError,
)
from celine.linkreset.logs import configure_logging
from celine.linkreset.models import RunOutcome

logger = logging.getLogger(__name__)

INSTRUCTIONS = """\
This {mode} a dry run.
Running against {server_url}.
Will delete all users in realm {idp_realm}.
Will delete all links to realm {idp_realm} from realm {application_realm}.
"""

ConfigPath = Annotated[
    Optional[Path],
    typer.Argument(
        help="Path to the link reset YAML file (default: ./linkreset.yaml)",
        dir_okay=False,
    ),
]
ServerUrl = Annotated[
    Optional[str],
    typer.Option("--server-url", "-u", help="Keycloak base URL"),
]
IdpRealm = Annotated[
    Optional[str],
    typer.Option("--idp-realm", help="Federated realm whose users are deleted"),
]
ApplicationRealm = Annotated[
    Optional[str],
    typer.Option("--application-realm", help="Realm whose links are removed"),
]
UserMax = Annotated[
    Optional[int],
    typer.Option("--user-max", help="Refuse realms holding more users than this"),
]
Verbose = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose output"),
]


def _load(config_path: Path | None, verbose: bool, **overrides) -> LinkResetSettings:
    """Load settings, exiting with an error message when they are unusable."""
    try:
        return load_settings(config_path, **overrides)
    except ConfigError as e:
        typer.secho(f"Error loading config: {e}", fg=typer.colors.RED, err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        raise typer.Exit(1)


def _fail(message: str, verbose: bool) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    if verbose:
        import traceback

        traceback.print_exc()
    raise typer.Exit(1)


def _wait_for_confirmation(settings: LinkResetSettings) -> None:
    """Show what the run will do and block until the operator presses Enter."""
    typer.echo(
        INSTRUCTIONS.format(
            mode="IS NOT" if settings.real_run else "IS",
            server_url=settings.server_url,
            idp_realm=settings.idp_realm,
            application_realm=settings.application_realm,
        )
    )
    if settings.real_run:
        typer.secho(
            "Warning: users and links will be deleted!", fg=typer.colors.YELLOW
        )
    typer.prompt(
        "Please review the configuration. Press Enter to continue, "
        "or terminate the program to cancel",
        default="",
        show_default=False,
    )


def run(
    config_path: ConfigPath = None,
    server_url: ServerUrl = None,
    idp_realm: IdpRealm = None,
    application_realm: ApplicationRealm = None,
    user_max: UserMax = None,
    real_run: Annotated[
        Optional[bool],
        typer.Option(
            "--real-run/--dry-run",
            help="Apply the changes, or only show what would be done",
        ),
    ] = None,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Write audit events as JSON"),
    ] = False,
    verbose: Verbose = False,
) -> None:
    """Delete all users of the IdP realm and the links pointing at it.

    Reads the configuration, shows what will be done and waits for
    confirmation. Then deletes every user in the IdP realm and removes every
    link to the IdP realm from the users of the application realm. Usernames
    are kept, so the next login re-creates the link.

    Example:
        celine-linkreset run linkreset.yaml --dry-run
        celine-linkreset run linkreset.yaml --real-run --user-max 200
    """
    settings = _load(
        config_path,
        verbose,
        server_url=server_url,
        idp_realm=idp_realm,
        application_realm=application_realm,
        user_max=user_max,
        real_run=real_run,
    )
    configure_logging("DEBUG" if verbose else settings.log_level, json_format=json_logs)

    _wait_for_confirmation(settings)

    try:
        outcome = _run_reset(settings)
    except CeilingExceeded as e:
        if e.partial is not None:
            # The identity sweep already ran; report what it did
            typer.echo("\n" + render(e.partial))
        _fail(f"Refusing to run: {e}", verbose)
    except KeycloakAuthError as e:
        _fail(f"Authentication failed: {e}", verbose)
    except KeycloakError as e:
        _fail(f"Keycloak error: {e}", verbose)
    except Exception as e:
        _fail(f"Unexpected error: {e}", verbose)

    typer.echo("\n" + render(outcome))


def _run_reset(settings: LinkResetSettings) -> RunOutcome:
    """Authenticate and run both sweeps."""
    config = settings.run_configuration()
    audit = AuditLogger(simulated=config.simulate)

    with KeycloakAdminClient(settings) as client:
        client.authenticate()
        engine = ReconciliationEngine(client, config, audit=audit)
        return engine.run()


def status(
    config_path: ConfigPath = None,
    server_url: ServerUrl = None,
    idp_realm: IdpRealm = None,
    application_realm: ApplicationRealm = None,
    user_max: UserMax = None,
    verbose: Verbose = False,
) -> None:
    """Show user counts of the target realms against the ceiling.

    Makes no changes.

    Example:
        celine-linkreset status linkreset.yaml
    """
    settings = _load(
        config_path,
        verbose,
        server_url=server_url,
        idp_realm=idp_realm,
        application_realm=application_realm,
        user_max=user_max,
    )
    configure_logging("DEBUG" if verbose else settings.log_level)

    typer.echo(f"Keycloak: {settings.server_url} (ceiling {settings.user_max})")

    try:
        with KeycloakAdminClient(settings) as client:
            client.authenticate()
            counts = [
                (realm, client.count_users(realm))
                for realm in (settings.idp_realm, settings.application_realm)
            ]
    except KeycloakAuthError as e:
        _fail(f"Authentication failed: {e}", verbose)
    except KeycloakError as e:
        _fail(f"Keycloak error: {e}", verbose)
    except Exception as e:
        _fail(f"Unexpected error: {e}", verbose)

    over = False
    for realm, count in counts:
        if count > settings.user_max:
            over = True
            typer.secho(f"  - {realm}: {count} users (over ceiling)", fg=typer.colors.RED)
        else:
            typer.echo(f"  - {realm}: {count} users")

    if over:
        raise typer.Exit(1)
