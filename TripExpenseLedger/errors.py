"""Exceptions shared by the ledger modules."""


class ValidationError(ValueError):
    """Raised when input data violates a precondition of the ledger."""
