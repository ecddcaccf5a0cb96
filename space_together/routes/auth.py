from fastapi import APIRouter, Depends, status

from space_together.core.dependencies import get_current_user, get_main_db, get_token_codec
from space_together.core.security import TokenCodec
from space_together.schemas import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserClaims,
    UserResponse,
)
from space_together.services import AuthService

router = APIRouter(tags=["Authentication"])


# Service dependencies
def get_auth_service(
    db=Depends(get_main_db),
    codec: TokenCodec = Depends(get_token_codec)
) -> AuthService:
    return AuthService(db, codec)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    """Create a control-plane account and sign the user in"""
    document, token = await auth_service.register(request)
    return AuthResponse(
        message="Account created",
        token=token,
        user=UserResponse.from_document(document)
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    document, token = await auth_service.login(request)
    return AuthResponse(
        message="Login successful",
        token=token,
        user=UserResponse.from_document(document)
    )


@router.get("/me", response_model=UserResponse)
async def me(
    current_user: UserClaims = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    return UserResponse.from_document(await auth_service.get_user(current_user.id))


@router.post("/auth/refresh", response_model=TokenResponse)
async def refresh_token(
    current_user: UserClaims = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    return TokenResponse(token=await auth_service.refresh(current_user))
