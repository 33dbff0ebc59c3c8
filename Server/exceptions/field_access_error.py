"""
RouteWarden Server - Field Access Error

Raised when a request writes fields the caller's roles may not write.
"""

from typing import List

from exceptions.routewarden_error import RouteWardenError


class FieldAccessDeniedError(RouteWardenError):
    """Exception for denied field writes, carries the denied field names."""

    status_code = 403

    def __init__(self, denied_fields: List[str]):
        super().__init__(
            "Access denied. You do not have write permission for the following fields: "
            + ", ".join(denied_fields)
        )
        self.denied_fields = list(denied_fields)
