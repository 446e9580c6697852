from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra fields in .env
    )

    database_url: str

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    frontend_url: Optional[List[str]] = None

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_bucket: str = "uploads"

    default_folder: str = "others"

settings = Settings()
