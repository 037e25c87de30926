# auth_service/routes.py
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from .credentials import CredentialStore
from .database import get_db
from .guard import require_identity
from .schemas import (
    ForgotPasswordData,
    LoginData,
    RegisterData,
    ResetPasswordData,
    UserDetail,
    public_profile,
)
from .security import Identity

TOKEN_COOKIE_MAX_AGE = 24 * 60 * 60
RESET_REQUESTED_MESSAGE = (
    "If a user with that email exists, a password reset link will be sent."
)

auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# --- Dependencies ---
def get_credential_store(request: Request, db: Session = Depends(get_db)) -> CredentialStore:
    state = request.app.state
    return CredentialStore(db, state.hasher, clock=state.clock)


# ------------------------------------------------------------------
# --- ROUTES DEFINITIONS ---
# ------------------------------------------------------------------
@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
def register_user(data: RegisterData, store: CredentialStore = Depends(get_credential_store)):
    user = store.register(data.name, data.email, data.password, data.role)
    return {"status": "success", "data": {"user": public_profile(user)}}


@auth_router.post("/signin")
def login_user(
    data: LoginData,
    request: Request,
    response: Response,
    store: CredentialStore = Depends(get_credential_store),
):
    user = store.verify_credentials(data.email, data.password)
    token = request.app.state.tokens.issue(user.id, user.role)
    store.logger.info("user_logged_in", user_id=user.id, email=user.email)

    if request.app.state.settings.is_production:
        response.set_cookie(
            "token",
            token,
            max_age=TOKEN_COOKIE_MAX_AGE,
            httponly=True,
            secure=True,
            samesite="strict",
        )

    return {"status": "success", "data": {"token": token, "user": public_profile(user)}}


@auth_router.get("/me")
def get_user_details(
    identity: Identity = Depends(require_identity),
    store: CredentialStore = Depends(get_credential_store),
):
    user = store.get_user(identity.id)
    detail = UserDetail.model_validate(user).model_dump(by_alias=True, mode="json")
    return {"status": "success", "data": {"user": detail}}


@auth_router.post("/forgot-password")
def forgot_password(
    data: ForgotPasswordData,
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
):
    token = store.request_password_reset(
        data.email, deliver=request.app.state.reset_delivery
    )
    body = {"status": "success", "message": RESET_REQUESTED_MESSAGE}
    if token is not None and request.app.state.settings.is_development:
        reset_url = str(request.url_for("reset_password", token=token))
        body["devOnly"] = {"resetUrl": reset_url, "resetToken": token}
    return body


@auth_router.patch("/reset-password/{token}", name="reset_password")
def reset_password(
    token: str,
    data: ResetPasswordData,
    store: CredentialStore = Depends(get_credential_store),
):
    store.reset_password(token, data.password)
    return {"status": "success", "message": "Password reset successful"}
