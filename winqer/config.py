"""WINQER — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Supabase ──
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: Optional[str] = None

    # ── Database ──
    database_url: str = ""

    # ── Meta API ──
    meta_base_url: str = "https://graph.facebook.com"
    meta_api_version: str = "v18.0"
    meta_default_ad_account_id: str = ""

    # ── Google OAuth ──
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None

    # ── Stripe ──
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_id: Optional[str] = None

    # ── AI Providers ──
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    default_ai_provider: str = "openai"  # openai | gemini
    openai_model: str = "gpt-4o"
    openai_image_model: str = "dall-e-3"
    gemini_model: str = "gemini-2.0-flash-exp"

    # ── App ──
    app_base_url: str = "http://localhost:8000"
    environment: str = "development"
    log_level: str = "INFO"
    report_timezone: str = "Asia/Tokyo"
    default_cv_event_name: str = "フッター予約リンク"

    # ── Analytics cache ──
    cache_ttl_minutes: int = 30
    volatile_window_days: int = 3

    # ── Plans ──
    free_usage_limit: int = 1  # lifetime
    pro_daily_usage_limit: int = 5

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/winqer.db"
        return "sqlite:///./winqer.db"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
