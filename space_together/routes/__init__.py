from . import auth, events, health, school, school_timetable

__all__ = [
    "auth",
    "events",
    "health",
    "school",
    "school_timetable"
]
