"""
RouteWarden Server - Exceptions Package

Contains the error taxonomy shared by the RBAC core and the API routers.
"""

from exceptions.routewarden_error import RouteWardenError
from exceptions.validation_error import ValidationError
from exceptions.not_found_error import NotFoundError
from exceptions.conflict_error import ConflictError
from exceptions.transaction_error import TransactionError
from exceptions.field_access_error import FieldAccessDeniedError

__all__ = [
    'RouteWardenError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'TransactionError',
    'FieldAccessDeniedError',
]
