import logging
from typing import Any

from fastapi import Depends, HTTPException, Request, WebSocket, status

from labeler.dependencies import get_identity
from labeler.exceptions import AuthenticationError
from labeler.services.identity import IdentityProvider

log = logging.getLogger(__name__)


async def verify_token(request: Request, identity: IdentityProvider = Depends(get_identity)) -> Any:
    '''Resolve the labeler behind the bearer token and attach it to request.state.user'''
    token = request.headers.get("Authorization")
    if not token or not token.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No user session found. Please log in.")
    jwt = token.split(" ", 1)[1]
    try:
        user = await identity.get_user(jwt)
    except AuthenticationError as e:
        log.warning("Token verification failed: %s", e.detail)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    request.state.user = user  # Attach user object to request state
    return user


async def authenticate_ws(ws: WebSocket, identity: IdentityProvider) -> Any:
    """Resolve the labeler for a websocket from the bearer header or ?token= query param."""
    token = None
    auth_header = ws.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1]
    if not token:
        token = ws.query_params.get("token")
    if not token:
        raise AuthenticationError("Missing authentication token for websocket connection.")
    user = await identity.get_user(token)
    if not user:
        raise AuthenticationError("Invalid or expired token for websocket connection.")
    ws.state.user = user
    return user
