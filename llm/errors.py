"""Errors raised by classifier providers."""


class ClassifierError(Exception):
    """A classifier call failed (transport error or non-success status)."""


class BatchTimeoutError(ClassifierError):
    """A classifier call did not finish within its timeout."""
