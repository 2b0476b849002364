from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # Public anon key; RLS applies to every query made with it
    supabase_service_role_key: Optional[str] = None  # Seed script only, bypasses RLS

    # Auth session cookie
    auth_cookie_max_age_days: int = 7
    auth_cookie_samesite: str = "strict"

    # Query deadlines (seconds)
    profile_timeout_seconds: float = 1.0
    query_timeout_seconds: float = 2.0

    # Storage
    avatar_bucket: str = "user-avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024
    product_image_bucket: str = "product-images"

    # Orders
    order_tax_rate: float = 0.10
    free_shipping_threshold: float = 100.0
    flat_shipping_cost: float = 15.0

    # App
    app_name: str = "admindash"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def missing_settings(self) -> List[str]:
        """Names of the environment variables the Supabase client cannot start without."""
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_key:
            missing.append("SUPABASE_KEY")
        return missing

    @property
    def is_configured(self) -> bool:
        return not self.missing_settings()

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
