"""Login, token refresh/revocation and self-service account endpoints."""
from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from ..models import User
from .models import ChangePassword, Token, UserResponse
from .service import AuthService, ClientInfo, get_auth_service, get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service)
):
    """OAuth2 password flow; ``username`` carries the email address."""
    return service.login(form_data.username, form_data.password, ClientInfo.from_request(request))


@router.post("/refresh", response_model=Token)
async def refresh(
    refresh_token: str = Body(embed=True),
    service: AuthService = Depends(get_auth_service)
):
    return service.refresh_tokens(refresh_token)


@router.post("/logout")
async def logout(
    refresh_token: str = Body(embed=True),
    service: AuthService = Depends(get_auth_service)
):
    """Revoke a refresh token. Unknown tokens are accepted silently."""
    service.revoke_refresh_token(refresh_token)
    return {"message": "Successfully logged out"}


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    password_data: ChangePassword,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    service.change_password(current_user, password_data.current_password, password_data.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
