"""
govledger Exceptions

Shared exception taxonomy. Every error that aborts a transaction derives
from RevertError; module-specific errors live next to the code that raises
them and extend these classes.
"""


class GovLedgerException(Exception):
    """Base exception for govledger."""
    pass


class ConfigurationError(GovLedgerException):
    """Configuration error."""
    pass


class RevertError(GovLedgerException):
    """A call failed and its transaction was rolled back."""
    pass


class UnauthorizedError(RevertError):
    """Caller lacks the role required by the entry point."""
    pass


class InvalidStateError(RevertError):
    """Action attempted outside its valid lifecycle state."""
    pass


class AlreadyInitializedError(RevertError):
    """A one-shot initializer was called twice."""
    pass


class InvalidBlockError(RevertError):
    """Historical query for a block that is not yet final."""
    pass


class ExecutionRevertedError(RevertError):
    """A target action failed while executing a batch."""
    pass
