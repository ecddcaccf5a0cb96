from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from space_together.schemas.school.base import AffiliationType, SchoolType
from space_together.schemas.user.role import GenderEnum, UserRoleEnum


TIME_CLAIMS = {"iat", "exp"}


class TokenClaims(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    iat: Optional[int] = None
    exp: Optional[int] = None

    def to_claims(self, issued_at: int, expires_at: int) -> Dict[str, Any]:
        claims = self.model_dump(mode="json", exclude=TIME_CLAIMS)
        claims.update({"iat": issued_at, "exp": expires_at})
        return claims


# Principal: the authenticated end user bound to a request
class UserClaims(TokenClaims):
    id: str
    name: str
    email: str
    username: str
    image: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRoleEnum] = None
    gender: Optional[GenderEnum] = None
    current_school_id: Optional[str] = None


# SchoolIdentity: the school context a user elected
class SchoolClaims(TokenClaims):
    id: str
    creator_id: Optional[str] = None
    name: str
    username: str
    logo: Optional[str] = None
    school_type: Optional[SchoolType] = None
    affiliation: Optional[AffiliationType] = None
    database_name: str
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
