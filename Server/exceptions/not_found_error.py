"""
RouteWarden Server - Not Found Error

Raised when a role, permission or user id does not exist.
"""

from exceptions.routewarden_error import RouteWardenError


class NotFoundError(RouteWardenError):
    """Exception for unknown record ids."""

    status_code = 404
