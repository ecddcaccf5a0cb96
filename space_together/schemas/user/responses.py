from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from space_together.schemas.user.role import GenderEnum, UserRoleEnum


class UserResponse(BaseModel):
    """Public view of a control-plane user document (never carries the password hash)."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: EmailStr
    username: str
    image: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRoleEnum] = None
    gender: Optional[GenderEnum] = None
    current_school_id: Optional[str] = None
    schools: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserResponse":
        return cls(
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
            schools=[str(school_id) for school_id in document.get("schools") or []],
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )
