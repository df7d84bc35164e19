"""
Compiler Exceptions
===================

Validation findings are never raised; they are returned in a ValidationReport.
Exceptions are reserved for the loader boundary and for broken internal
invariants.
"""


class DBDocError(Exception):
    """Base class for all compiler exceptions."""

    pass


class CompilerInternalError(DBDocError):
    """Raised when the compiler violates one of its own invariants."""

    pass
