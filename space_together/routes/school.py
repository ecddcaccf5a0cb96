from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status

from space_together.core.database import MongoManager
from space_together.core.dependencies import (
    get_current_user,
    get_event_bus,
    get_mongo,
    get_token_codec,
    require_school_token,
)
from space_together.core.security import TokenCodec
from space_together.schemas import (
    SchoolClaims,
    SchoolCreateRequest,
    SchoolResponse,
    SchoolTokenResponse,
    UserClaims,
)
from space_together.services import EventBus, SchoolService

router = APIRouter(tags=["Schools"])


def get_school_service(
    mongo: MongoManager = Depends(get_mongo),
    codec: TokenCodec = Depends(get_token_codec)
) -> SchoolService:
    return SchoolService(mongo, codec)


@router.post("/schools", response_model=SchoolTokenResponse, status_code=status.HTTP_201_CREATED)
async def create_school(
    request: SchoolCreateRequest,
    background_tasks: BackgroundTasks,
    current_user: UserClaims = Depends(get_current_user),
    school_service: SchoolService = Depends(get_school_service),
    event_bus: EventBus = Depends(get_event_bus)
) -> SchoolTokenResponse:
    """Create a school and its tenant database; the creator gets a school token for it"""
    document, school_token = await school_service.create_school(request, current_user)
    school = SchoolResponse.from_document(document)
    background_tasks.add_task(event_bus.broadcast_created, "school", school.id, school)
    return SchoolTokenResponse(
        message="School created",
        school_token=school_token,
        school=school
    )


@router.get("/schools", response_model=List[SchoolResponse])
async def list_schools(
    school_service: SchoolService = Depends(get_school_service)
) -> List[SchoolResponse]:
    return [SchoolResponse.from_document(document) for document in await school_service.list_schools()]


@router.post("/schools/{school_id}/token", response_model=SchoolTokenResponse)
async def select_school(
    school_id: str,
    current_user: UserClaims = Depends(get_current_user),
    school_service: SchoolService = Depends(get_school_service)
) -> SchoolTokenResponse:
    """Issue a school token for a school the user belongs to"""
    document, school_token = await school_service.issue_school_token(school_id, current_user)
    return SchoolTokenResponse(
        school_token=school_token,
        school=SchoolResponse.from_document(document)
    )


@router.get("/school/me", response_model=SchoolClaims)
async def current_school(school: SchoolClaims = Depends(require_school_token)) -> SchoolClaims:
    return school
