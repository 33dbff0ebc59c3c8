"""
RouteWarden Server - Authentication and Authorization

This module provides:
- JWT token generation and validation
- Authentication dependencies for protected routes
- Permission checks resolved through the role-permission matrix
- A route guard that requires the permission derived from the matched route
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from managers.database_manager import DatabaseManager, ADMIN_PERMISSION
from models.database import User
from models.auth import TokenData
from role_permissions import RolePermissionMatrix
from route_classifier import ClassifierFromSettings

# JWT Configuration
SECRET_KEY = secrets.token_urlsafe(32)
ALGORITHM = "HS256"

# Security scheme for FastAPI
security = HTTPBearer()


# ==================== JWT Token Functions ====================

def CreateAccessToken(data: dict, db_manager: DatabaseManager, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token

    Args:
        data: Dictionary containing user data (user_id, email)
        db_manager: DatabaseManager instance to get JWT expiration setting
        expires_delta: Optional custom expiration time

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        session = db_manager.GetSession()
        try:
            expiration_hours = db_manager.GetIntSetting(session, "jwt_expiration_hours")
        finally:
            session.close()
        expire = datetime.now(timezone.utc) + timedelta(hours=expiration_hours)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def DecodeAccessToken(token: str) -> TokenData:
    """
    Decode and validate a JWT access token

    Args:
        token: JWT token string

    Returns:
        TokenData: Token data if valid

    Raises:
        HTTPException: If token is invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("user_id")
        email = payload.get("email")

        if user_id is None or email is None:
            raise credentials_exception

        return TokenData(user_id=user_id, email=email)

    except JWTError:
        raise credentials_exception


# ==================== Authentication Dependencies ====================

def GetCurrentUser(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    FastAPI dependency to get the current authenticated user
    Validates the JWT token and returns the user object

    Raises:
        HTTPException: If authentication fails
    """
    token_data = DecodeAccessToken(credentials.credentials)

    from database import db_manager

    session = db_manager.GetSession()
    try:
        user = session.query(User).filter(User.id == token_data.user_id).first()

        if user is None or user.email != token_data.email:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return user

    finally:
        session.close()


def GetCurrentActiveUser(current_user: User = Depends(GetCurrentUser)) -> User:
    """
    FastAPI dependency to get the current authenticated and active user

    Raises:
        HTTPException: If user is not active
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


# ==================== Authentication Helper Functions ====================

def AuthenticateUser(db_manager: DatabaseManager, email: str, password: str) -> Optional[dict]:
    """
    Authenticate a user with email and password

    Args:
        db_manager: DatabaseManager instance
        email: User email
        password: Plain text password

    Returns:
        dict: User data dictionary if authentication successful, None otherwise
    """
    session = db_manager.GetSession()

    try:
        user = session.query(User).filter(User.email == email).first()

        if not user:
            return None

        if not db_manager.VerifyPassword(password, user.password_hash):
            return None

        if not user.is_active:
            return None

        user.last_login = datetime.now(timezone.utc)
        session.commit()

        # Return user data as dictionary to avoid SQLAlchemy session issues
        return {
            'user_id': user.id,
            'email': user.email,
            'name': user.name,
            'roles': [role.name for role in user.roles],
        }

    finally:
        session.close()


# ==================== Permission Checking ====================

def GetRolePermissionMatrix() -> RolePermissionMatrix:
    """Matrix bound to the global database manager and permission catalog"""
    from database import db_manager, permission_catalog
    return RolePermissionMatrix(db_manager, permission_catalog)


def UserHasPermission(user: User, permission_name: str) -> bool:
    """
    Check if a user has a specific permission

    Args:
        user: User object (from GetCurrentUser)
        permission_name: Name of the permission to check (e.g., 'admin', 'user.index')

    Returns:
        bool: True if user has the permission or is admin, False otherwise
    """
    return GetRolePermissionMatrix().UserHasPermission(user.id, permission_name)


def RequirePermission(permission_name: str):
    """
    Dependency factory to create a permission checking dependency

    Args:
        permission_name: Name of the permission required

    Returns:
        Dependency function that checks for the permission

    Usage:
        @router.post("/something")
        async def some_endpoint(user: User = Depends(RequirePermission("user.store"))):
            ...
    """
    def permission_checker(current_user: User = Depends(GetCurrentActiveUser)) -> User:
        """
        Check if current user has the required permission

        Raises:
            HTTPException: 403 Forbidden if user lacks permission
        """
        if not UserHasPermission(current_user, permission_name):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required permission: {permission_name}"
            )

        return current_user

    return permission_checker


RequireAdmin = RequirePermission(ADMIN_PERMISSION)


def RequireRoutePermission(request: Request, current_user: User = Depends(GetCurrentActiveUser)) -> User:
    """
    FastAPI dependency requiring the permission derived from the matched route

    The route is classified exactly as the permission synchronizer classifies
    it, so the required name is the name of the synced permission. Routes the
    classifier skips only require authentication.

    Raises:
        HTTPException: 403 Forbidden if user lacks the route permission
    """
    route = request.scope.get("route")
    if route is None:
        return current_user

    from database import db_manager

    classifier = ClassifierFromSettings(db_manager)
    classified = classifier.Classify(route.path, request.method, getattr(route, "name", None))
    if classified is None:
        return current_user

    permission_name = classifier.PermissionName(*classified)
    if not UserHasPermission(current_user, permission_name):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied. Required permission: {permission_name}"
        )

    return current_user
