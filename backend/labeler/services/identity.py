"""labeler/services/identity.py

Identity provider adapter over ``supabase.auth``.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from supabase import AuthError, Client

from labeler.exceptions import AuthenticationError, StoreError

log = logging.getLogger(__name__)


@dataclass
class AuthOutcome:
    """Result of the combined log-in / sign-up flow."""
    success: bool
    message: str
    signup: bool = False
    warning: Optional[str] = None
    session: Any = None
    user: Any = None


class IdentityProvider:
    def __init__(self, supabase: Client) -> None:
        self.supabase = supabase

    async def sign_in(self, email: str, password: str) -> Any:
        """Password sign-in; returns the new session."""
        response = await self._call(
            "sign_in",
            lambda: self.supabase.auth.sign_in_with_password({"email": email, "password": password}),
        )
        if response is None or response.session is None:
            raise AuthenticationError("Invalid login credentials")
        return response.session

    async def sign_up(self, email: str, password: str) -> Any:
        response = await self._call(
            "sign_up",
            lambda: self.supabase.auth.sign_up({"email": email, "password": password}),
        )
        if response is None or response.user is None:
            raise AuthenticationError("Signup failed. Please try again.")
        return response.user

    async def get_session(self) -> Any:
        """Current session of this client, or ``None``."""
        return await self._call("get_session", self.supabase.auth.get_session)

    async def get_user(self, jwt: Optional[str] = None) -> Any:
        """User for *jwt* (or the client's own session), or ``None``."""
        response = await self._call("get_user", lambda: self.supabase.auth.get_user(jwt))
        return response.user if response is not None else None

    async def send_password_reset(self, email: str, redirect_url: str) -> None:
        await self._call(
            "send_password_reset",
            lambda: self.supabase.auth.reset_password_for_email(email, {"redirect_to": redirect_url}),
        )

    async def verify_email_token(self, token_hash: str, type: str) -> None:
        await self._call(
            "verify_email_token",
            lambda: self.supabase.auth.verify_otp({"token_hash": token_hash, "type": type}),
        )

    async def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except AuthError as exc:
            status = getattr(exc, "status", None)
            log.warning("Auth operation %s failed (status=%s): %s", operation, status, exc)
            raise AuthenticationError(getattr(exc, "message", None) or str(exc), status=status) from exc


async def authenticate(identity: IdentityProvider, store, email: str, password: str) -> AuthOutcome:
    """Log the user in, or sign them up when log-in fails.

    New accounts are mirrored into the ``users`` table. A failure to do so does
    not undo the sign-up; it is reported as a warning instead.
    """
    if not email or not password:
        return AuthOutcome(success=False, message="Email and password are required.")

    try:
        session = await identity.sign_in(email, password)
        return AuthOutcome(success=True, message="Logged in successfully!", session=session,
                           user=getattr(session, "user", None))
    except AuthenticationError as login_err:
        log.warning("Login failed, attempting signup: %s", login_err.detail)

    try:
        user = await identity.sign_up(email, password)
    except AuthenticationError as signup_err:
        log.error("Signup failed: %s", signup_err.detail)
        if signup_err.status == 500:
            return AuthOutcome(success=False, message="There was a problem with the database. Please try again later.")
        return AuthOutcome(success=False, message=signup_err.detail or "Signup failed. Please try again.")

    message = "Signup successful! Check your email to confirm your account."
    user_id = getattr(user, "id", None)
    if user_id:
        try:
            await store.insert_user(user_id, email, datetime.now(timezone.utc).isoformat())
        except StoreError as insert_err:
            log.error("Failed to add user to users table: %s", insert_err.detail)
            return AuthOutcome(
                success=True,
                message=message,
                warning="However, there was an issue syncing your account. Please contact support.",
                user=user,
            )
    return AuthOutcome(success=True, signup=True, message=message, user=user)
