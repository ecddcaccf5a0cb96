import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from bson import ObjectId

from space_together.core.database import MongoManager, school_db_name
from space_together.core.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
)
from space_together.core.logging import logger
from space_together.core.security import TokenCodec
from space_together.schemas.auth.tokens import SchoolClaims, UserClaims
from space_together.schemas.school.requests import SchoolCreateRequest
from space_together.services.tenant_service import initialize_school_db


SCHOOLS_COLLECTION = "schools"
USERS_COLLECTION = "users"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return slug[:49] or "school"


def school_claims(document: Dict[str, Any]) -> SchoolClaims:
    return SchoolClaims(
        id=str(document["_id"]),
        creator_id=str(document["creator_id"]) if document.get("creator_id") else None,
        name=document["name"],
        username=document["username"],
        logo=document.get("logo"),
        school_type=document.get("school_type"),
        affiliation=document.get("affiliation"),
        database_name=document["database_name"],
        created_at=document.get("created_at"),
    )


class SchoolService:
    """Control-plane school records and the tenant database behind each one."""

    def __init__(self, mongo: MongoManager, codec: TokenCodec):
        self.mongo = mongo
        self.db = mongo.main()
        self.schools = self.db[SCHOOLS_COLLECTION]
        self.users = self.db[USERS_COLLECTION]
        self.codec = codec

    async def create_school(
        self, request: SchoolCreateRequest, creator: UserClaims
    ) -> Tuple[Dict[str, Any], str]:
        """Insert the school, initialise ``school_<id>`` and hand back a school token."""
        username = request.username or slugify(request.name)
        if await self.schools.find_one({"username": username}, {"_id": 1}):
            raise ConflictError("School username already exists")

        school_id = ObjectId()
        now = datetime.now(timezone.utc)
        document = {
            "_id": school_id,
            "name": request.name,
            "username": username,
            "logo": request.logo,
            "school_type": request.school_type.value if request.school_type else None,
            "affiliation": request.affiliation.value if request.affiliation else None,
            "creator_id": ObjectId(creator.id) if ObjectId.is_valid(creator.id) else creator.id,
            "database_name": school_db_name(str(school_id)),
            "created_at": now,
            "updated_at": now,
        }
        await self.schools.insert_one(document)
        await initialize_school_db(self.mongo.for_tenant(document["database_name"]))
        await self._select_for_user(creator.id, school_id, add_membership=True)

        logger.info(f"School created: {username} ({document['database_name']})")
        return document, self.codec.issue_school(school_claims(document))

    async def list_schools(self) -> List[Dict[str, Any]]:
        return await self.schools.find({}).sort("created_at", 1).to_list(length=None)

    async def get_school(self, school_id: str) -> Dict[str, Any]:
        if not ObjectId.is_valid(school_id):
            raise BadRequestError("Invalid school id")
        document = await self.schools.find_one({"_id": ObjectId(school_id)})
        if not document:
            raise NotFoundError("School not found")
        return document

    async def issue_school_token(
        self, school_id: str, user: UserClaims
    ) -> Tuple[Dict[str, Any], str]:
        """Select ``school_id`` as the user's current school; members and the creator only."""
        document = await self.get_school(school_id)
        account = None
        if ObjectId.is_valid(user.id):
            account = await self.users.find_one({"_id": ObjectId(user.id)}, {"schools": 1})
        memberships = {str(value) for value in (account or {}).get("schools") or []}
        if str(document.get("creator_id")) != user.id and school_id not in memberships:
            raise PermissionDenied("You are not a member of this school")

        await self._select_for_user(user.id, document["_id"])
        return document, self.codec.issue_school(school_claims(document))

    async def _select_for_user(self, user_id: str, school_id: ObjectId, add_membership: bool = False) -> None:
        if not ObjectId.is_valid(user_id):
            return
        update: Dict[str, Any] = {
            "$set": {
                "current_school_id": school_id,
                "updated_at": datetime.now(timezone.utc),
            }
        }
        if add_membership:
            update["$addToSet"] = {"schools": school_id}
        await self.users.update_one({"_id": ObjectId(user_id)}, update)
