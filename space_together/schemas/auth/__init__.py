from .tokens import SchoolClaims, TokenResponse, UserClaims
from .responses import AuthResponse
from .requests import LoginRequest, RegisterRequest
