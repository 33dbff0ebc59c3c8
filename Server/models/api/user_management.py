"""
RouteWarden Server - User API Models

Pydantic models for the users resource API.
"""

from typing import Optional, List
from pydantic import BaseModel


class CreateUserRequest(BaseModel):
    """Request model for creating a new user"""
    name: str
    email: str
    password: str


class UpdateUserRequest(BaseModel):
    """Request model for updating a user (only sent fields change)"""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class BatchCreateUsersRequest(BaseModel):
    """Request model for creating several users at once"""
    resources: List[CreateUserRequest]


class BatchDeleteUsersRequest(BaseModel):
    """Request model for deleting several users at once"""
    resources: List[int]
