"""Configuration and environment settings"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from pathlib import Path


class Settings(BaseSettings):
    """Application configuration"""

    # Supabase
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Local (guest) persistence
    LOCAL_STORE_PATH: str = "./data/local_store.json"
    GUEST_COOKIE_NAME: str = "guest-id"
    GUEST_COOKIE_MAX_AGE: int = 31536000  # one year, seconds

    # Spreadsheet engine
    RECALC_STRATEGY: str = "graph"  # graph | iterative
    RECALC_MAX_PASSES: int = 10

    # Category budgets
    DEFAULT_ALERT_THRESHOLD: float = 80.0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Web
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    def get_cors_origins(self) -> List[str]:
        """Get allowed CORS origins"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def get_local_store_path(self) -> Path:
        """Get local store file path, creating its directory"""
        path = Path(self.LOCAL_STORE_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def supabase_key(self) -> Optional[str]:
        """Service role key when available, anon key otherwise"""
        return self.SUPABASE_SERVICE_ROLE_KEY or self.SUPABASE_ANON_KEY


settings = Settings()
