# space_together/schemas/__init__.py

from .common.error import ErrorResponse
from .user import GenderEnum, UserResponse, UserRoleEnum
from .school import (
    AffiliationType,
    SchoolCreateRequest,
    SchoolResponse,
    SchoolTokenResponse,
    SchoolType,
)
from .auth import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    SchoolClaims,
    TokenResponse,
    UserClaims,
)
from .events import Event, EventKind, format_frame
from .timetable import ClassTimetableResponse, WeekSchedule
