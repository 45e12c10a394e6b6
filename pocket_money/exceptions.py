"""
Typed error kinds raised by the Pocket Money services.

Every error carries a machine-readable ``code`` so the HTTP layer (or any
other caller) can branch on the type instead of parsing messages.

    PocketMoneyError
    +-- ForbiddenError          caller lacks membership or the head role
    +-- NotFoundError           referenced entry/group/chore/user is missing
    +-- InvalidReferenceError   entity exists but fails a relational check
    +-- InvalidArgumentError    malformed input
    +-- ConflictError           entity is not in the required state
    +-- TransientError          storage failure; the caller may retry
"""


class PocketMoneyError(Exception):
    code = "POCKET_MONEY_ERROR"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ForbiddenError(PocketMoneyError):
    code = "FORBIDDEN"


class NotFoundError(PocketMoneyError):
    code = "NOT_FOUND"


class InvalidReferenceError(PocketMoneyError):
    code = "INVALID_REFERENCE"


class InvalidArgumentError(PocketMoneyError):
    code = "INVALID_ARGUMENT"


class ConflictError(PocketMoneyError):
    code = "CONFLICT"


class TransientError(PocketMoneyError):
    code = "TRANSIENT"
    retryable = True
