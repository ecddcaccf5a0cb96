# space_together/schemas/user/role.py
from enum import Enum


class UserRoleEnum(str, Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    SCHOOLSTAFF = "SCHOOLSTAFF"


class GenderEnum(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"
