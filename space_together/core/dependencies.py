from typing import Optional

from fastapi import Depends, Request

from space_together.core.database import MongoManager
from space_together.core.errors import (
    MissingCredential,
    PermissionDenied,
    SchoolTokenRequired,
    TenantRequired,
)
from space_together.core.logging import logger
from space_together.core.security import TokenCodec
from space_together.schemas.auth.tokens import SchoolClaims, UserClaims
from space_together.services.event_bus import EventBus


# Application singletons attached in create_app
def get_mongo(request: Request) -> MongoManager:
    return request.app.state.mongo


def get_main_db(mongo: MongoManager = Depends(get_mongo)):
    """Control-plane database handle"""
    return mongo.main()


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


# Request extensions attached by the middleware
async def get_optional_user(request: Request) -> Optional[UserClaims]:
    return getattr(request.state, "principal", None)


async def get_current_user(
    principal: Optional[UserClaims] = Depends(get_optional_user)
) -> UserClaims:
    if principal is None:
        raise MissingCredential()
    return principal


async def require_school_token(request: Request) -> SchoolClaims:
    """Guard for school-scoped routes: a verified ``School-Token`` must be attached."""
    school = getattr(request.state, "school", None)
    if school is None:
        raise SchoolTokenRequired()
    return school


async def get_tenant_db(request: Request):
    tenant_db = getattr(request.state, "tenant_db", None)
    if tenant_db is None:
        raise TenantRequired()
    return tenant_db


async def get_school_tenant_db(
    request: Request,
    school: SchoolClaims = Depends(require_school_token),
    tenant_db=Depends(get_tenant_db),
):
    """Tenant handle for a route that writes on behalf of the school in the token.

    The resolved tenant must be the one named by the school token, otherwise a
    header or subdomain could point a valid token at another school's data.
    """
    tenant_name = getattr(request.state, "tenant_name", None)
    if tenant_name != school.database_name:
        logger.warning(
            f"School token for {school.database_name} used against tenant {tenant_name}",
            extra={"tenant": tenant_name}
        )
        raise PermissionDenied("School token does not match the requested school")
    return tenant_db
