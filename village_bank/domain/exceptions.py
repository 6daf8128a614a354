"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any mutation (user-correctable)"""

    pass


class AuthorizationError(DomainException):
    """Caller is unauthenticated or lacks the required role"""

    pass


class LoanNotFoundError(DomainException):
    """Referenced loan does not exist"""

    pass


class InvalidTransitionError(DomainException):
    """Loan is not in a state that allows the requested transition"""

    pass


class PersistenceError(DomainException):
    """Data store rejected or failed a read/write"""

    pass


class DuplicatePostingError(PersistenceError):
    """Ledger entry already posted for this reference"""

    pass


class RemoteProcedureError(DomainException):
    """Remote procedure call failed or is unavailable"""

    pass
