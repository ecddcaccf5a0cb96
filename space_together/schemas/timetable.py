from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


WEEK_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri"]


class WeekSchedule(BaseModel):
    day: str
    is_holiday: bool = False
    start_on: Optional[str] = None
    periods: List[Dict[str, Any]] = []


class ClassTimetableResponse(BaseModel):
    id: str
    class_id: str
    academic_year: str
    weekly_schedule: List[WeekSchedule]
    disabled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ClassTimetableResponse":
        return cls(
            id=str(document["_id"]),
            class_id=str(document["class_id"]),
            academic_year=document["academic_year"],
            weekly_schedule=document.get("weekly_schedule", []),
            disabled=bool(document.get("disabled", False)),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )
