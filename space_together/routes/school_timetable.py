from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from space_together.core.dependencies import (
    get_event_bus,
    get_school_tenant_db,
    require_school_token,
)
from space_together.schemas import ClassTimetableResponse, ErrorResponse
from space_together.services import ClassTimetableService, EventBus
from space_together.services.class_timetable_service import DEFAULT_START_TIME

router = APIRouter(
    prefix="/school/class-timetables",
    tags=["Class timetables"],
    dependencies=[Depends(require_school_token)],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        400: {"model": ErrorResponse}
    }
)


def get_class_timetable_service(db=Depends(get_school_tenant_db)) -> ClassTimetableService:
    return ClassTimetableService(db)


@router.api_route(
    "/generate/{class_id}",
    methods=["GET", "POST"],
    response_model=ClassTimetableResponse,
    status_code=status.HTTP_201_CREATED
)
async def generate_timetable(
    class_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    academic_year: Optional[str] = Query(default=None, max_length=20),
    start_time: str = Query(default=DEFAULT_START_TIME),
    service: ClassTimetableService = Depends(get_class_timetable_service),
    event_bus: EventBus = Depends(get_event_bus)
) -> ClassTimetableResponse:
    """Generate the default Mon-Fri timetable for a class in the current school"""
    document, created = await service.generate(class_id, academic_year, start_time)
    timetable = ClassTimetableResponse.from_document(document)
    if created:
        background_tasks.add_task(
            event_bus.broadcast_created, "class_timetable", timetable.id, timetable
        )
    else:
        response.status_code = status.HTTP_200_OK
    return timetable


@router.get("", response_model=List[ClassTimetableResponse])
async def list_timetables(
    service: ClassTimetableService = Depends(get_class_timetable_service)
) -> List[ClassTimetableResponse]:
    return [ClassTimetableResponse.from_document(document) for document in await service.list_timetables()]
