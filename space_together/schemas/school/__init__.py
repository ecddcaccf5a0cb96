from .base import AffiliationType, SchoolType
from .requests import SchoolCreateRequest
from .responses import SchoolResponse, SchoolTokenResponse
