# sustainability_dashboard/api/auth.py

import logging
from datetime import timedelta
from typing import Callable

from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import ApiError
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc, to_object_id
from sustainability_dashboard.models.enums import UserRole
from sustainability_dashboard.models.user import (
    ChangePasswordIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    public_user,
)

logger = logging.getLogger(__name__)
router = APIRouter()

NOT_AUTHORIZED = "Not authorized to access this route"
INVALID_CREDENTIALS = "Invalid credentials"

# -------------------------------------------------------------------
# Password hashing / JWT
# -------------------------------------------------------------------

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(plain, hashed)
    except ValueError:
        # malformed hash stored for this user
        return False


def create_access_token(user_id: str) -> str:
    exp = now_utc() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {"sub": user_id, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)
    return parts[1].strip()


# -------------------------------------------------------------------
# Auth dependencies
# -------------------------------------------------------------------

async def get_current_user(request: Request, db=Depends(get_db)) -> dict:
    """
    Usage:
      @router.get("/me")
      async def me(user=Depends(get_current_user)): ...

    Returns the user document (password hash removed, `_id` kept as ObjectId).
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)

    try:
        oid = to_object_id(user_id)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)

    user = await db.users.find_one({"_id": oid})
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User account is deactivated")

    user.pop("password", None)
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: 403 unless the current user holds one of `roles`."""
    allowed = {r.value for r in roles}

    async def _checker(user=Depends(get_current_user)) -> dict:
        if user.get("role") not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User role is not authorized to access this route",
            )
        return user

    return _checker


admin_required = require_roles(UserRole.ADMIN)

# Anyone who can act on data (everyone but viewers).
editor_required = require_roles(
    UserRole.ADMIN, UserRole.HEAD_OF_SUSTAINABILITY, UserRole.ANALYST
)

# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.post("/register", status_code=201)
async def register(payload: RegisterIn, db=Depends(get_db), _admin=Depends(admin_required)):
    email = payload.email.strip().lower()

    existing = await db.users.find_one({"email": email})
    if existing:
        raise ApiError(400, "User already exists")

    now = now_utc()
    user_doc = {
        "email": email,
        "name": payload.name,
        "password": hash_password(payload.password),
        "role": payload.role,
        "department": payload.department,
        "unit": payload.unit,
        "isActive": True,
        "lastLogin": None,
        "createdAt": now,
        "updatedAt": now,
    }

    try:
        ins = await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise ApiError(400, "User already exists")

    user_doc["_id"] = ins.inserted_id
    logger.info(f"User registered: {email} (role={payload.role})")
    return envelope(public_user(user_doc), "User created successfully")


@router.post("/login")
async def login(payload: LoginIn, db=Depends(get_db)):
    email = payload.email.strip().lower()

    user = await db.users.find_one({"email": email})
    # Same response for unknown email and wrong password.
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    now = now_utc()
    await db.users.update_one({"_id": user["_id"]}, {"$set": {"lastLogin": now}})
    user["lastLogin"] = now

    token = create_access_token(str(user["_id"]))
    return envelope({"token": token, "user": public_user(user)}, "Login successful")


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return envelope(public_user(user))


@router.get("/profile")
async def get_profile(user=Depends(get_current_user)):
    return envelope(public_user(user))


@router.put("/profile")
async def update_profile(payload: ProfileUpdateIn, db=Depends(get_db), user=Depends(get_current_user)):
    fields = {}
    if payload.name:
        fields["name"] = payload.name
    if "department" in payload.model_fields_set:
        fields["department"] = payload.department
    if "unit" in payload.model_fields_set:
        fields["unit"] = payload.unit

    if fields:
        fields["updatedAt"] = now_utc()
        await db.users.update_one({"_id": user["_id"]}, {"$set": fields})
        user.update(fields)

    return envelope(public_user(user), "Profile updated successfully")


@router.put("/change-password")
async def change_password(payload: ChangePasswordIn, db=Depends(get_db), user=Depends(get_current_user)):
    stored = await db.users.find_one({"_id": user["_id"]})
    if not stored:
        raise ApiError(404, "User not found")

    if not verify_password(payload.current_password, stored.get("password", "")):
        raise ApiError(400, "Current password is incorrect")

    await db.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.new_password), "updatedAt": now_utc()}},
    )
    logger.info(f"Password changed for {stored.get('email')}")
    return envelope(message="Password changed successfully")


@router.get("/users")
async def list_users(db=Depends(get_db), _admin=Depends(admin_required)):
    users = await db.users.find({}).sort("createdAt", 1).to_list(length=None)
    return envelope([serialize_doc(public_user(u)) for u in users])
