import logging
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field

from config import JWT_ALG, JWT_EXPIRE_DAYS, JWT_SECRET
from database import create_document, get_db, parse_object_id
from schemas import AdminUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

security = HTTPBearer(auto_error=False)

ADMIN_PERMISSIONS = [
    "templates:read", "templates:write", "templates:delete",
    "media:read", "media:write", "media:delete",
    "users:read", "users:write",
]
EDITOR_PERMISSIONS = ["templates:read", "templates:write", "media:read", "media:write"]


# ---------- Models ----------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    role: Literal["admin", "editor"] = "editor"


# ---------- Helpers ----------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def create_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": user["role"],
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "email": user["email"],
        "name": user["name"],
        "role": user["role"],
        "permissions": user.get("permissions", []),
    }


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
) -> dict:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        payload = jwt.decode(creds.credentials, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db["adminuser"].find_one({"_id": parse_object_id(payload.get("sub"))})
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return {"id": str(user["_id"]), "_id": user["_id"], "email": user["email"], "role": user["role"]}


def require_role(*roles: str):
    def checker(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return checker


require_admin = require_role("admin")


# ---------- Routes ----------
@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db=Depends(get_db)):
    email = payload.email.lower()
    if db["adminuser"].find_one({"email": email}):
        raise HTTPException(400, "User with this email already exists")
    user = AdminUser(
        email=email,
        password_hash=hash_password(payload.password),
        name=payload.name,
        role=payload.role,
        permissions=ADMIN_PERMISSIONS if payload.role == "admin" else EDITOR_PERMISSIONS,
    )
    user_id = create_document(db, "adminuser", user)
    doc = db["adminuser"].find_one({"_id": parse_object_id(user_id)})
    logger.info("Registered %s user %s", payload.role, email)
    return {"token": create_token(doc), "user": public_user(doc)}


@router.post("/login")
def login(payload: LoginRequest, db=Depends(get_db)):
    user = db["adminuser"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


@router.post("/logout")
def logout(_: dict = Depends(get_current_user)):
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(user: dict = Depends(get_current_user), db=Depends(get_db)):
    doc = db["adminuser"].find_one({"_id": user["_id"]})
    if not doc:
        raise HTTPException(404, "User not found")
    return public_user(doc)
