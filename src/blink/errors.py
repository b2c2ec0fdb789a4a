"""Exception hierarchy for seeding errors.

Declaration and option errors are raised synchronously, before any database
connection is opened. Errors that happen while a run is streaming data are
never raised to the caller; the runner wraps them in a TransactionError and
reports them through a failed SeedResult.
"""

from typing import Optional


class BlinkError(Exception):
    """Base exception for all seeding errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Declaration errors
class DeclarationError(BlinkError, ValueError):
    """A table or context declaration is invalid."""

    pass


class DuplicateKeyError(DeclarationError):
    """A table name or context key was declared twice."""

    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"key already exists in '{namespace}' of Seeder: {key}")


class MissingBuilderError(DeclarationError):
    """No builder is registered for a declared table or context key."""

    pass


class BuilderSignatureError(DeclarationError):
    """A builder cannot be called with (seeder, key)."""

    pass


# Run-time configuration errors
class InvalidOptionError(BlinkError, ValueError):
    """A run option has an unsupported value."""

    pass


class AdapterContractError(BlinkError, TypeError):
    """The configured adapter does not implement call(records, table_name, destination, options)."""

    pass


# Errors captured during a run
class EncodingError(BlinkError):
    """A record could not be encoded into the bulk-load wire format."""

    def __init__(self, message: str, table_name: Optional[str] = None, column: Optional[str] = None):
        self.table_name = table_name
        self.column = column
        super().__init__(message)


class TransactionError(BlinkError):
    """The destination rejected the data or failed while a run was in progress.

    Attributes:
        table_name: Table being loaded when the failure happened, if any
        cause: The original exception, when there was one
    """

    def __init__(self, message: str, table_name: Optional[str] = None, cause: Optional[BaseException] = None):
        self.table_name = table_name
        self.cause = cause
        super().__init__(message)
