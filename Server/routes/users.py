"""
RouteWarden Server - Users API Endpoints

The users resource under the API prefix. Every route requires the permission
the synchronizer derives for it (e.g. GET /api/users -> user.index), and,
when field permissions are enabled, responses are filtered and writes are
checked against the caller's field-level flags on the users table.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models.database import User
from models.api import CreateUserRequest, UpdateUserRequest, BatchCreateUsersRequest, BatchDeleteUsersRequest
from auth import RequireRoutePermission
from exceptions import ValidationError, NotFoundError, FieldAccessDeniedError
from field_permissions import FieldPermissionOverlay

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()

USERS_TABLE = "users"
MAX_BATCH_SIZE = 100

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
EMAIL_TAKEN = "The email has already been taken."


# ==================== Helpers ====================

def GetFieldPermissions(user: User) -> Optional[Dict[str, Dict[str, bool]]]:
    """
    Field flags of the caller on the users table

    Returns:
        dict of field flags, or None when field permissions are disabled
    """
    from database import db_manager

    session = db_manager.GetSession()
    try:
        enabled = db_manager.GetBoolSetting(session, "field_permissions_enabled")
    finally:
        session.close()

    if not enabled:
        return None
    return FieldPermissionOverlay(db_manager).PermissionsForUser(user.id, USERS_TABLE)


def ReadResponse(data, field_permissions) -> dict:
    if field_permissions is not None:
        data = FieldPermissionOverlay.FilterReadable(data, field_permissions)
    return {"data": data}


def WriteResponse(data, submitted_fields: Iterable[str], field_permissions) -> dict:
    if field_permissions is not None:
        data = FieldPermissionOverlay.FilterWriteResponse(data, submitted_fields)
    return {"data": data}


def CheckWritableFields(submitted_fields: Iterable[str], field_permissions) -> None:
    """
    Raises:
        FieldAccessDeniedError: If any submitted field is not writable
    """
    if field_permissions is None:
        return
    denied = FieldPermissionOverlay.DeniedWriteFields(submitted_fields, field_permissions)
    if denied:
        raise FieldAccessDeniedError(denied)


def ValidateUserFields(data: dict, prefix: str = "") -> Dict[str, List[str]]:
    """
    Field-level validation of user input

    Args:
        data: Submitted fields (only present fields are checked)
        prefix: Error key prefix for batch items, e.g. "resources.0."

    Returns:
        dict: field -> messages (empty if valid)
    """
    errors = {}

    if "name" in data:
        name = (data["name"] or "").strip()
        if len(name) < 2 or len(name) > 255:
            errors[f"{prefix}name"] = ["The name must be between 2 and 255 characters."]

    if "email" in data:
        email = (data["email"] or "").strip()
        if not EMAIL_PATTERN.match(email) or len(email) > 255:
            errors[f"{prefix}email"] = ["The email must be a valid email address."]

    if "password" in data and data["password"] is not None:
        if len(data["password"]) < 8:
            errors[f"{prefix}password"] = ["The password must be at least 8 characters."]

    return errors


def EmailTaken(session, email: str, exclude_user_id: Optional[int] = None) -> bool:
    query = session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def _GetUserOr404(session, user_id: int) -> User:
    user = session.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


# ==================== Users API ====================

@router.get("/api/users", name="users.index", tags=["Users"])
async def users_index(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(RequireRoutePermission)
):
    """
    List users, paginated

    Returns:
        dict: data (list of users) and pagination meta
    """
    from database import db_manager

    field_permissions = GetFieldPermissions(current_user)
    session = db_manager.GetSession()
    try:
        query = session.query(User).order_by(User.id)
        total = query.count()
        users = query.offset((page - 1) * per_page).limit(per_page).all()

        response = ReadResponse([user.ToDict() for user in users], field_permissions)
        response["meta"] = {"current_page": page, "per_page": per_page, "total": total}
        return response
    finally:
        session.close()


@router.get("/api/users/search", name="users.search", tags=["Users"])
async def users_search(
    q: str = Query("", max_length=255),
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Search users by name or email

    Args:
        q: Search text (substring match)
    """
    from database import db_manager

    field_permissions = GetFieldPermissions(current_user)
    session = db_manager.GetSession()
    try:
        query = session.query(User)
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        users = query.order_by(User.id).all()
        return ReadResponse([user.ToDict() for user in users], field_permissions)
    finally:
        session.close()


@router.post("/api/users/batch", name="users.batch", tags=["Users"])
async def users_batch_store(
    request_data: BatchCreateUsersRequest,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Create several users in one transaction (all or nothing)
    """
    from database import db_manager

    if not request_data.resources or len(request_data.resources) > MAX_BATCH_SIZE:
        raise ValidationError(
            "The given data was invalid.",
            {"resources": [f"Between 1 and {MAX_BATCH_SIZE} resources are required."]}
        )

    items = [item.model_dump() for item in request_data.resources]
    field_permissions = GetFieldPermissions(current_user)
    for item in items:
        CheckWritableFields(item.keys(), field_permissions)

    errors = {}
    seen_emails = set()
    for index, item in enumerate(items):
        errors.update(ValidateUserFields(item, prefix=f"resources.{index}."))
        if item["email"] in seen_emails:
            errors.setdefault(f"resources.{index}.email", []).append("The email field has a duplicate value.")
        seen_emails.add(item["email"])
    if errors:
        raise ValidationError("The given data was invalid.", errors)

    with db_manager.Transaction("batch create users") as session:
        taken = [
            email for (email,) in session.query(User.email).filter(User.email.in_(list(seen_emails))).all()
        ]
        if taken:
            raise ValidationError(
                "The given data was invalid.",
                {"email": ["One or more email addresses have already been taken."]}
            )

        users = []
        for item in items:
            user = User(
                name=item["name"].strip(),
                email=item["email"].strip(),
                password_hash=db_manager.HashPassword(item["password"]),
                is_active=True
            )
            session.add(user)
            users.append(user)
        session.flush()
        created = [user.ToDict() for user in users]

    logger.info(f"User '{current_user.email}' created {len(created)} users in batch")

    submitted = set().union(*(item.keys() for item in items))
    return WriteResponse(created, submitted, field_permissions)


@router.delete("/api/users/batch", name="users.batch", tags=["Users"])
async def users_batch_destroy(
    request_data: BatchDeleteUsersRequest,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Delete several users in one transaction (all or nothing)
    """
    from database import db_manager, permission_catalog

    user_ids = list(dict.fromkeys(request_data.resources))
    if not user_ids or len(user_ids) > MAX_BATCH_SIZE:
        raise ValidationError(
            "The given data was invalid.",
            {"resources": [f"Between 1 and {MAX_BATCH_SIZE} resources are required."]}
        )

    field_permissions = GetFieldPermissions(current_user)

    with db_manager.Transaction("batch delete users") as session:
        users = session.query(User).filter(User.id.in_(user_ids)).all()
        found = {user.id for user in users}
        missing = [user_id for user_id in user_ids if user_id not in found]
        if missing:
            raise NotFoundError(f"User(s) not found: {', '.join(str(user_id) for user_id in missing)}")

        deleted = [user.ToDict() for user in users]
        for user in users:
            session.delete(user)

    # Cached permission sets are keyed by user id
    permission_catalog.Invalidate()
    logger.info(f"User '{current_user.email}' deleted {len(deleted)} users in batch")

    return ReadResponse(deleted, field_permissions)


@router.get("/api/users/{user_id}", name="users.show", tags=["Users"])
async def users_show(
    user_id: int,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Get one user
    """
    from database import db_manager

    field_permissions = GetFieldPermissions(current_user)
    session = db_manager.GetSession()
    try:
        user = _GetUserOr404(session, user_id)
        return ReadResponse(user.ToDict(), field_permissions)
    finally:
        session.close()


@router.post("/api/users", status_code=201, name="users.store", tags=["Users"])
async def users_store(
    request_data: CreateUserRequest,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Create a user

    Raises:
        ValidationError: If a field is invalid or the email is already taken
    """
    from database import db_manager

    data = request_data.model_dump()
    field_permissions = GetFieldPermissions(current_user)
    CheckWritableFields(data.keys(), field_permissions)

    errors = ValidateUserFields(data)
    if errors:
        raise ValidationError("The given data was invalid.", errors)

    session = db_manager.GetSession()
    try:
        email = data["email"].strip()
        if EmailTaken(session, email):
            raise ValidationError("The given data was invalid.", {"email": [EMAIL_TAKEN]})

        user = User(
            name=data["name"].strip(),
            email=email,
            password_hash=db_manager.HashPassword(data["password"]),
            is_active=True
        )
        session.add(user)
        session.commit()

        logger.info(f"User '{current_user.email}' created user '{user.email}'")

        return WriteResponse(user.ToDict(), data.keys(), field_permissions)

    except IntegrityError:
        session.rollback()
        raise ValidationError("The given data was invalid.", {"email": [EMAIL_TAKEN]})
    except (HTTPException, ValidationError):
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create user")
    finally:
        session.close()


@router.put("/api/users/{user_id}", name="users.update", tags=["Users"])
async def users_update(
    user_id: int,
    request_data: UpdateUserRequest,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Update a user (only submitted fields change)

    Raises:
        ValidationError: If a field is invalid or the email is already taken
    """
    from database import db_manager

    data = request_data.model_dump(exclude_unset=True)
    field_permissions = GetFieldPermissions(current_user)
    CheckWritableFields(data.keys(), field_permissions)

    errors = ValidateUserFields(data)
    if errors:
        raise ValidationError("The given data was invalid.", errors)

    session = db_manager.GetSession()
    try:
        user = _GetUserOr404(session, user_id)

        if data.get("name") is not None:
            user.name = data["name"].strip()

        if data.get("email") is not None:
            email = data["email"].strip()
            if EmailTaken(session, email, exclude_user_id=user_id):
                raise ValidationError("The given data was invalid.", {"email": [EMAIL_TAKEN]})
            user.email = email

        if data.get("password"):
            user.password_hash = db_manager.HashPassword(data["password"])

        user.updated_at = datetime.now(timezone.utc)
        session.commit()

        logger.info(f"User '{current_user.email}' updated user {user_id}")

        return WriteResponse(user.ToDict(), data.keys(), field_permissions)

    except IntegrityError:
        session.rollback()
        raise ValidationError("The given data was invalid.", {"email": [EMAIL_TAKEN]})
    except (HTTPException, ValidationError, NotFoundError):
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Error updating user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update user")
    finally:
        session.close()


@router.delete("/api/users/{user_id}", name="users.destroy", tags=["Users"])
async def users_destroy(
    user_id: int,
    current_user: User = Depends(RequireRoutePermission)
):
    """
    Delete a user

    Role assignments and direct grants of the user are deleted with it.
    """
    from database import db_manager, permission_catalog

    field_permissions = GetFieldPermissions(current_user)

    with db_manager.Transaction("delete user") as session:
        user = _GetUserOr404(session, user_id)
        deleted = user.ToDict()
        session.delete(user)

    permission_catalog.Invalidate()
    logger.info(f"User '{current_user.email}' deleted user {user_id}")

    return ReadResponse(deleted, field_permissions)
