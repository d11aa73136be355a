"""Error kinds raised by the ledger and aggregation services."""


class LedgerError(Exception):
    """Base class for ledger errors. Always local to a single call."""


class InvalidInputError(LedgerError):
    """Raised when request fields are malformed or out of range."""


class HierarchyViolationError(LedgerError):
    """Raised when sender/receiver roles or the ancestor chain are inconsistent.

    Not retryable: it points at misconfigured actor data.
    """


class NotFoundError(LedgerError):
    """Raised when a record or actor is absent or not addressable by the caller."""


class PropagationFailure(LedgerError):
    """An ancestor record could not be updated during propagation.

    Never raised out of a ledger operation. It is captured on the
    propagation report and logged, and the primary write stands.
    """
