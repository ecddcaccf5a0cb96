import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from space_together.core.errors import BadRequestError, ValidationError
from space_together.core.logging import logger
from space_together.schemas.timetable import WEEK_DAYS


CLASS_TIMETABLES_COLLECTION = "class_timetables"
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DEFAULT_START_TIME = "08:00"


def current_academic_year(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.year + 1}"


def default_weekly_schedule(start_time: str) -> List[Dict[str, Any]]:
    """Mon-Fri with no periods; clients fill the periods in afterwards."""
    return [
        {"day": day, "is_holiday": False, "start_on": start_time, "periods": []}
        for day in WEEK_DAYS
    ]


class ClassTimetableService:
    """Class timetables stored in a school's own database."""

    def __init__(self, db):
        self.db = db
        self.collection = db[CLASS_TIMETABLES_COLLECTION]

    async def generate(
        self,
        class_id: str,
        academic_year: Optional[str] = None,
        start_time: str = DEFAULT_START_TIME,
    ) -> Tuple[Dict[str, Any], bool]:
        """Create the default timetable for a class.

        Returns ``(document, created)``; when the class already has a timetable
        for the year the stored one is returned with ``created`` False.
        """
        if not ObjectId.is_valid(class_id):
            raise BadRequestError("Invalid class id")
        if not TIME_PATTERN.match(start_time):
            raise ValidationError("start_time must be HH:MM")

        class_oid = ObjectId(class_id)
        academic_year = academic_year or current_academic_year()
        query = {"class_id": class_oid, "academic_year": academic_year}

        existing = await self.collection.find_one(query)
        if existing:
            return existing, False

        now = datetime.now(timezone.utc)
        document = {
            **query,
            "weekly_schedule": default_weekly_schedule(start_time),
            "disabled": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            # lost a race with a concurrent generate for the same class and year
            return await self.collection.find_one(query), False
        document["_id"] = result.inserted_id

        logger.info(
            f"Class timetable generated for class {class_id} ({academic_year})",
            extra={"tenant": self.db.name}
        )
        return document, True

    async def list_timetables(self) -> List[Dict[str, Any]]:
        return await self.collection.find({}).sort("created_at", 1).to_list(length=None)
