"""
RouteWarden Server - Conflict Error

Raised when a write collides with a unique key.
"""

from exceptions.routewarden_error import RouteWardenError


class ConflictError(RouteWardenError):
    """Exception for unique key collisions."""

    status_code = 409
