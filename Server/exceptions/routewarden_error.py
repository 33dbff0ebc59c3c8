"""
RouteWarden Server - Base Error

Base exception class for all RBAC core errors.
"""


class RouteWardenError(Exception):
    """Base exception for RouteWarden errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
