from .role import GenderEnum, UserRoleEnum
from .responses import UserResponse
