"""
RouteWarden Server - Validation Error

Raised for malformed or missing request fields.
"""

from typing import Dict, List, Optional

from exceptions.routewarden_error import RouteWardenError


class ValidationError(RouteWardenError):
    """Exception for invalid input, carries field-level messages."""

    status_code = 422

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.errors = errors or {}
