# labeler/dependencies.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from supabase import Client, create_client

from labeler.config import Settings, load_settings
from labeler.services.identity import IdentityProvider
from labeler.services.store import LabelStore

log = logging.getLogger(__name__)


def build_supabase_client(settings: Settings) -> Optional[Client]:
    """Create the Supabase client for one application instance, if configured."""
    if not settings.supabase_configured:
        log.warning("SUPABASE_URL / SUPABASE_KEY not set; Supabase-backed routes will answer 503.")
        return None
    client = create_client(settings.supabase_url, settings.supabase_key)
    log.info("Supabase client configured for %s", settings.supabase_url)
    return client


def get_settings(conn: HTTPConnection) -> Settings:
    """FastAPI dependency returning the settings the app was built with."""
    settings = getattr(conn.app.state, "settings", None)
    return settings if settings is not None else load_settings()


def get_supabase_client(conn: HTTPConnection) -> Client:
    """FastAPI dependency returning the app's Supabase client handle."""
    client = getattr(conn.app.state, "supabase", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase client is not available. Check backend environment variables.",
        )
    return client


def get_store(supabase: Client = Depends(get_supabase_client)) -> LabelStore:
    return LabelStore(supabase)


def get_identity(supabase: Client = Depends(get_supabase_client)) -> IdentityProvider:
    return IdentityProvider(supabase)
