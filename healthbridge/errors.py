"""
Exception taxonomy for request-level failures.

Expected, recoverable failures of notification channels travel as `Result`
values instead (see `healthbridge.services.result`). These exceptions are for
failures the caller has to hear about.
"""


class HealthBridgeError(Exception):
    """Base class for all HealthBridge errors."""


class InvalidInputError(HealthBridgeError):
    """A required field is missing or malformed. Never retried."""


class NotFoundError(HealthBridgeError):
    """An alert, user or profile id does not exist."""


class UpstreamFailure(HealthBridgeError):
    """A collaborator (store lookup, notification transport) failed.

    Services catch and log these and carry on in a degraded mode.
    """


class UnrecognizedInputError(HealthBridgeError):
    """A voice command matched no keyword tier. Aborts the whole operation."""

    def __init__(self, message: str, command: str) -> None:
        super().__init__(message)
        self.command = command
