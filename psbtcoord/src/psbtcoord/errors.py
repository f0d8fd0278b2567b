"""
Error types raised by the PSBT coordinator.

Every stage of the lifecycle raises one of these; nothing is retried or
replaced with a default value inside the core.
"""

from __future__ import annotations


class PsbtCoordError(Exception):
    """Base class for all coordinator errors."""


class ConfigurationError(PsbtCoordError):
    """A required configuration value is missing or invalid."""


class TransportError(PsbtCoordError):
    """The node could not be reached or answered with something unparseable."""

    def __init__(self, method: str, message: str, status_code: int | None = None):
        self.method = method
        self.status_code = status_code
        super().__init__(f"{method}: {message}")


class ProtocolError(PsbtCoordError):
    """The node answered with a non-null ``error`` field."""

    def __init__(self, method: str, code: int | None, message: str):
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"{method}: RPC error {code}: {message}")


class DecodeError(PsbtCoordError):
    """The ``result`` field is absent or does not have the expected shape."""

    def __init__(self, stage: str, detail: str = ""):
        self.stage = stage
        self.detail = detail
        msg = f"Unexpected response shape at stage '{stage}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class DomainError(PsbtCoordError):
    """A business rule was violated by an otherwise well-formed response."""

    stage: str = ""

    def __init__(self, message: str, *, code: int | None = None):
        self.code = code
        super().__init__(message)


class SelectionError(DomainError):
    stage = "select"


class FundingError(DomainError):
    stage = "create"


class JoinError(DomainError):
    stage = "join"


class SigningError(DomainError):
    stage = "sign"


class CombineError(DomainError):
    stage = "combine"


class IncompleteTransactionError(DomainError):
    """Required signatures are still missing."""

    stage = "finalize"


class BroadcastError(DomainError):
    stage = "broadcast"


class InvalidTransitionError(DomainError):
    """A lifecycle operation was called out of order."""


def from_protocol_error(
    error_cls: type[DomainError], err: ProtocolError, context: str
) -> DomainError:
    """Build a domain error that keeps the node's code and message."""
    return error_cls(f"{context}: {err.message} (code {err.code})", code=err.code)
