"""
RouteWarden Server - Transaction Error

Raised after a multi-row mutation failed and was rolled back.
"""

from exceptions.routewarden_error import RouteWardenError


class TransactionError(RouteWardenError):
    """Exception wrapping the cause of a rolled back transaction."""

    status_code = 500

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause
