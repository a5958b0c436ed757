import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from a .env file
load_dotenv()


class Settings(BaseModel):
    """Runtime configuration, read from the environment."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    password_reset_redirect: str = "http://localhost:3000/login"
    resize_debounce_ms: int = Field(150, ge=0)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings() -> Settings:
    """Build :class:`Settings` from the current process environment."""
    origins = os.getenv("LABELER_CORS_ORIGINS", "http://localhost:3000")
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        password_reset_redirect=os.getenv(
            "LABELER_PASSWORD_RESET_REDIRECT", "http://localhost:3000/login"
        ),
        resize_debounce_ms=int(os.getenv("LABELER_RESIZE_DEBOUNCE_MS", "150")),
    )
