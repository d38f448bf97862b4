"""Structured audit logging for identity and link removals."""

from typing import Any

import structlog

from celine.linkreset.models import ItemResult


class AuditLogger:
    """Audit logger for the mutating operations of a run."""

    def __init__(
        self,
        simulated: bool = False,
        logger: Any = None,
    ):
        """Initialize audit logger.

        Args:
            simulated: Tag every event as part of a simulated run
            logger: Optional custom logger
        """
        self._simulated = simulated
        self._logger = logger or structlog.get_logger("audit")

    def log_sweep(self, event: str, realm: str, **fields: Any) -> None:
        """Log the start or end of a sweep over a realm."""
        self._logger.info(
            event=event, realm=realm, simulated=self._simulated, **fields
        )

    def log_result(self, realm: str, result: ItemResult) -> None:
        """Log the result of one delete or remove operation.

        Successes go to info, failures to warning with their cause.
        """
        log_data: dict[str, Any] = {
            "event": result.operation,
            "realm": realm,
            "username": result.username,
            "simulated": self._simulated,
        }

        if result.provider:
            log_data["provider"] = result.provider

        if result.ok:
            self._logger.info(**log_data)
            return

        log_data["event"] = f"{result.operation}_failed"
        log_data["error"] = result.error
        self._logger.warning(**log_data)

    def log_error(self, realm: str, operation: str, username: str, error: str) -> None:
        """Log a read failure that made the run skip an identity."""
        self._logger.warning(
            event=f"{operation}_failed",
            realm=realm,
            username=username,
            error=error,
            simulated=self._simulated,
        )
