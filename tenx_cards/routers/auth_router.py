from fastapi import APIRouter, Depends

from tenx_cards.models.user import User
from tenx_cards.schemas.auth_schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from tenx_cards.services.auth_service import AuthService, get_auth_service, get_current_user
from tenx_cards.utils.dependencies import get_feature_flags
from tenx_cards.utils.errors import ApiError
from tenx_cards.utils.feature_flags import FeatureFlags

router = APIRouter()


def to_user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, created_at=user.created_at)


@router.post("/register", status_code=201, response_model=RegisterResponse)
def register(
    command: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
    flags: FeatureFlags = Depends(get_feature_flags),
):
    if not flags.auth:
        raise ApiError("FEATURE_DISABLED", "Authentication feature is currently disabled", 403)

    user = auth.register(command.email, command.password)
    return RegisterResponse(user=to_user_response(user), message="Registration successful")


@router.post("/login", response_model=LoginResponse)
def login(command: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    user, token, expires_at = auth.login(command.email, command.password)
    return LoginResponse(
        user=to_user_response(user),
        session=TokenResponse(access_token=token, expires_at=expires_at),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(user: User = Depends(get_current_user), auth: AuthService = Depends(get_auth_service)):
    auth.logout(user)
    return MessageResponse(message="Logged out")


def require_auth_feature(flags: FeatureFlags = Depends(get_feature_flags)) -> None:
    if not flags.auth:
        raise ApiError("FEATURE_DISABLED", "Authentication feature is currently disabled", 403)


# Flag checada antes do token: com auth desligado ninguém troca senha
@router.post("/update-password", response_model=LoginResponse, dependencies=[Depends(require_auth_feature)])
def update_password(
    command: UpdatePasswordRequest,
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    token, expires_at = auth.update_password(user, command.password)
    return LoginResponse(
        user=to_user_response(user),
        session=TokenResponse(access_token=token, expires_at=expires_at),
    )
