from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    # Environment configuration
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Supabase configuration (auth only; metering data lives in DATABASE_URL)
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")

    # Database configuration (for SQLAlchemy - connects to Supabase PostgreSQL)
    database_url: Optional[str] = os.getenv("DATABASE_URL", "")
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Frontend URL (for CORS) and public app URL (for links in emails)
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    app_url: str = os.getenv("APP_URL", "http://localhost:3000")

    # JWT configuration (used by Supabase)
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-this")
    jwt_algorithm: str = "HS256"
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "authenticated")

    # Stripe configuration
    stripe_secret: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    stripe_price_starter: str = os.getenv("STRIPE_STARTER_PRICE_ID", "")
    stripe_price_pro: str = os.getenv("STRIPE_PRO_PRICE_ID", "")
    stripe_price_agency: str = os.getenv("STRIPE_AGENCY_PRICE_ID", "")

    # Outbound email (usage alerts)
    sendgrid_api_key: str = os.getenv("SENDGRID_API_KEY", "")
    email_from: str = os.getenv("EMAIL_FROM", "RenderLab <noreply@renderlab.com>")

    class Config:
        env_file = ".env"


settings = Settings()
