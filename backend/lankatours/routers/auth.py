from fastapi import APIRouter, Depends, HTTPException

from lankatours.auth import create_access_token, current_identity
from lankatours.models import AuthLoginRequest, AuthLoginResponse, Identity, RegisterRequest, User, UserView
from lankatours.routers.errors import raise_http_error
from lankatours.services.errors import AuthorizationError, MarketplaceError
from lankatours.services.marketplace import marketplace

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_response(user: User) -> AuthLoginResponse:
    token, expires_at = create_access_token(user_id=user.id)
    return AuthLoginResponse(
        access_token=token,
        user=UserView(id=user.id, name=user.name, email=user.email, role=user.role),
        expires_at=expires_at,
    )


@router.post("/register", response_model=AuthLoginResponse, status_code=201)
def register(payload: RegisterRequest):
    try:
        user = marketplace.accounts.register(payload)
    except MarketplaceError as exc:
        raise_http_error(exc)
    return _login_response(user)


@router.post("/login", response_model=AuthLoginResponse)
def login(payload: AuthLoginRequest):
    try:
        user = marketplace.accounts.authenticate(payload.email, payload.password)
    except AuthorizationError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    return _login_response(user)


@router.get("/me", response_model=UserView)
def me(identity: Identity = Depends(current_identity)):
    try:
        user = marketplace.accounts.get_user(identity.user_id)
    except MarketplaceError as exc:
        raise_http_error(exc)
    return UserView(id=user.id, name=user.name, email=user.email, role=user.role)
