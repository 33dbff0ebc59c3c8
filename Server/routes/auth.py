"""
RouteWarden Server - Authentication Endpoints

This module contains the login endpoint that issues bearer tokens.
"""

import logging
from fastapi import APIRouter, HTTPException, status

from models.auth import LoginRequest, LoginResponse
from auth import AuthenticateUser, CreateAccessToken


# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


# ==================== Authentication Endpoints ====================

@router.post("/auth/login", response_model=LoginResponse, tags=["Authentication"])
async def login(login_request: LoginRequest):
    """
    Authenticate user and return JWT token

    Args:
        login_request: Email and password

    Returns:
        LoginResponse: JWT token and expiration time

    Raises:
        HTTPException: If credentials are invalid
    """
    from database import db_manager

    # Authenticate user (returns dict or None)
    user_data = AuthenticateUser(db_manager, login_request.email, login_request.password)

    if not user_data:
        logger.warning(f"Failed login attempt for '{login_request.email}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Get JWT expiration from settings
    session = db_manager.GetSession()
    try:
        expiration_hours = db_manager.GetIntSetting(session, "jwt_expiration_hours")
    finally:
        session.close()

    token_data = {
        "user_id": user_data['user_id'],
        "email": user_data['email'],
    }
    access_token = CreateAccessToken(token_data, db_manager)

    logger.info(f"User '{user_data['email']}' logged in successfully")

    return LoginResponse(
        token=access_token,
        expires_in=expiration_hours * 3600
    )
