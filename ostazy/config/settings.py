from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # Client
    application_name: str = "ostazy"
    session_storage_key: str = "sb-auth-token"
    legacy_session_key: str = "sb-session"  # Read as fallback, cleared on sign-out
    session_file: str = "~/.ostazy/session.json"
    profiles_table: str = "user_profiles"
    request_timeout: Optional[float] = None  # None: no client-imposed deadline

    # App
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return self.supabase_url.rstrip("/")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
