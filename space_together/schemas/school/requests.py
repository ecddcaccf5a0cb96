from typing import Optional

from pydantic import BaseModel, Field, field_validator

from space_together.schemas.school.base import AffiliationType, SchoolType


class SchoolCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    username: Optional[str] = Field(default=None, pattern=r"^[a-z0-9][a-z0-9_-]{1,48}$")
    logo: Optional[str] = None
    school_type: Optional[SchoolType] = None
    affiliation: Optional[AffiliationType] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if len(v) < 2:
            raise ValueError("School name is too short")
        return v
