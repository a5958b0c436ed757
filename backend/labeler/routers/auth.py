import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from labeler.api_models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    ProfileResponse,
)
from labeler.auth import verify_token
from labeler.config import Settings
from labeler.dependencies import get_identity, get_settings, get_store
from labeler.exceptions import AuthenticationError
from labeler.services.identity import IdentityProvider, authenticate
from labeler.services.store import LabelStore

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    identity: IdentityProvider = Depends(get_identity),
    store: LabelStore = Depends(get_store),
):
    """Log in with email/password, signing the user up if the log-in fails."""
    outcome = await authenticate(identity, store, body.email, body.password)
    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.message)

    session: Any = outcome.session
    user: Any = outcome.user
    return LoginResponse(
        success=True,
        message=outcome.message,
        signup=outcome.signup,
        warning=outcome.warning,
        access_token=getattr(session, "access_token", None),
        refresh_token=getattr(session, "refresh_token", None),
        user_id=str(user.id) if getattr(user, "id", None) else None,
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: PasswordResetRequest,
    identity: IdentityProvider = Depends(get_identity),
    settings: Settings = Depends(get_settings),
):
    try:
        await identity.send_password_reset(body.email, settings.password_reset_redirect)
    except AuthenticationError as exc:
        log.error("Password reset failed for %s: %s", body.email, exc.detail)
        raise HTTPException(status_code=400, detail="Error resetting password. Please try again.")
    return MessageResponse(message="Password reset email sent! Check your inbox.")


@router.get("/confirm")
async def confirm_email(
    token_hash: Optional[str] = None,
    type: Optional[str] = None,
    next: str = "/",
    identity: IdentityProvider = Depends(get_identity),
):
    """Exchange the emailed confirmation token, then redirect to *next* (or /error)."""
    if not next.startswith("/") or next.startswith("//"):
        next = "/"  # only same-site redirects
    if token_hash and type:
        try:
            await identity.verify_email_token(token_hash, type)
            return RedirectResponse(url=next, status_code=303)
        except AuthenticationError as exc:
            log.warning("Email token verification failed: %s", exc.detail)
    return RedirectResponse(url="/error", status_code=303)


@router.get("/profile", response_model=ProfileResponse, dependencies=[Depends(verify_token)])
async def profile(request: Request):
    user = request.state.user
    return ProfileResponse(id=str(user.id), email=getattr(user, "email", None))
