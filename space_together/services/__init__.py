from .auth_service import AuthService
from .class_timetable_service import ClassTimetableService
from .event_bus import EventBus
from .school_service import SchoolService
from .tenant_service import initialize_school_db

__all__ = [
    "AuthService",
    "ClassTimetableService",
    "EventBus",
    "SchoolService",
    "initialize_school_db"
]
