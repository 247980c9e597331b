# integrations/exceptions.py

"""
INTEGRATION ERRORS

Raised by the adapters that talk to third-party systems (payment gateway,
cloud terminal, books ledger, receipt delivery). Services translate these
into checkout / sync errors; only the terminal polling view handles them
directly.
"""


class IntegrationError(Exception):
    """Base exception for all third-party integration failures."""


class IntegrationNotConfigured(IntegrationError):
    """Raised when an adapter is called without the credentials it needs."""


class TransportError(IntegrationError):
    """Network failure, timeout, or a response that is not JSON."""


class UpstreamHTTPError(IntegrationError):
    """The remote service answered with an HTTP error status."""

    def __init__(self, message: str, *, status: int, payload: dict | None = None):
        super().__init__(message)
        self.status = status
        self.payload = payload or {}


class GatewayTransportError(IntegrationError):
    """The payment gateway or cloud terminal could not be reached."""


class LedgerError(IntegrationError):
    """The books ledger rejected a request or could not be reached."""


class LedgerDocumentAlreadyVoid(LedgerError):
    """The ledger reports that the receipt was already voided."""


class NotifierError(IntegrationError):
    """A receipt could not be delivered."""
