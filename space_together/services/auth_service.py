import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from space_together.core.errors import (
    ConflictError,
    InvalidCredentialsException,
    NotFoundError,
)
from space_together.core.logging import logger
from space_together.core.security import TokenCodec, get_password_hash, verify_password
from space_together.schemas.auth.requests import LoginRequest, RegisterRequest
from space_together.schemas.auth.tokens import UserClaims
from space_together.schemas.user.role import UserRoleEnum


USERS_COLLECTION = "users"
USERNAME_ATTEMPTS = 5


def generate_username(name: str) -> str:
    """``Ada Lovelace`` -> ``ada_lovelace_<0-255>``"""
    words = [word.strip("-'.,") for word in name.lower().split()]
    base = "_".join(word for word in words if word) or "user"
    return f"{base}_{random.randint(0, 255)}"


def user_claims(document: Dict[str, Any]) -> UserClaims:
    return UserClaims(
        id=str(document["_id"]),
        name=document["name"],
        email=document["email"],
        username=document.get("username") or "",
        image=document.get("image"),
        phone=document.get("phone"),
        role=document.get("role"),
        gender=document.get("gender"),
        current_school_id=(
            str(document["current_school_id"]) if document.get("current_school_id") else None
        ),
    )


class AuthService:
    """Control-plane accounts: registration, login and user tokens."""

    def __init__(self, db, codec: TokenCodec):
        self.db = db
        self.users = db[USERS_COLLECTION]
        self.codec = codec

    async def _unique_username(self, name: str) -> str:
        for _ in range(USERNAME_ATTEMPTS):
            username = generate_username(name)
            if not await self.users.find_one({"username": username}, {"_id": 1}):
                return username
        # Every random suffix collided; fall back to the id-sized suffix
        return f"{generate_username(name)}_{ObjectId()}"

    async def register(self, request: RegisterRequest) -> Tuple[Dict[str, Any], str]:
        email = request.email.lower()
        if await self.users.find_one({"email": email}, {"_id": 1}):
            raise ConflictError("Email already exists")

        now = datetime.now(timezone.utc)
        document = {
            "name": request.name,
            "email": email,
            "username": await self._unique_username(request.name),
            "password_hash": get_password_hash(request.password),
            "role": UserRoleEnum.STUDENT.value,
            "image": None,
            "phone": None,
            "gender": None,
            "current_school_id": None,
            "schools": [],
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.users.insert_one(document)
        except DuplicateKeyError:
            raise ConflictError("Email already exists")
        document["_id"] = result.inserted_id

        logger.info(f"User registered: {document['username']}")
        return document, self.codec.issue_user(user_claims(document))

    async def login(self, request: LoginRequest) -> Tuple[Dict[str, Any], str]:
        document = await self.users.find_one({"email": request.email.lower()})
        if not document or not verify_password(request.password, document.get("password_hash") or ""):
            logger.info(f"Failed login for {request.email}")
            raise InvalidCredentialsException()
        return document, self.codec.issue_user(user_claims(document))

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        document: Optional[Dict[str, Any]] = None
        if ObjectId.is_valid(user_id):
            document = await self.users.find_one({"_id": ObjectId(user_id)})
        if not document:
            raise NotFoundError("User not found")
        return document

    async def refresh(self, principal: UserClaims) -> str:
        """Re-issue a user token from the stored account, picking up profile changes."""
        document = await self.get_user(principal.id)
        return self.codec.issue_user(user_claims(document))
