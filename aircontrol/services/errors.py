"""
Domain errors raised by the services layer.

They subclass ValueError so callers that only care about "bad input"
can keep catching ValueError. The HTTP mapping lives in main.py.
"""


class DomainError(ValueError):
    """Base class for expected, user-facing failures"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """User input failed a precondition; nothing was changed"""
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    """The document changed since the caller read it"""
    status_code = 409


class OracleError(DomainError):
    """The suggestion oracle failed or returned unusable output"""
    status_code = 502


class PersistenceError(DomainError):
    """The document store read or write failed"""
    status_code = 503
