from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from space_together.schemas.school.base import AffiliationType, SchoolType


class SchoolResponse(BaseModel):
    id: str
    name: str
    username: str
    logo: Optional[str] = None
    school_type: Optional[SchoolType] = None
    affiliation: Optional[AffiliationType] = None
    creator_id: Optional[str] = None
    database_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "SchoolResponse":
        return cls(
            id=str(document["_id"]),
            name=document["name"],
            username=document["username"],
            logo=document.get("logo"),
            school_type=document.get("school_type"),
            affiliation=document.get("affiliation"),
            creator_id=str(document["creator_id"]) if document.get("creator_id") else None,
            database_name=document["database_name"],
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )


class SchoolTokenResponse(BaseModel):
    message: str = "School context selected"
    school_token: str
    school: SchoolResponse
