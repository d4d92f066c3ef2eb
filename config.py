"""
Configuration module for the companion booking engine.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    store_timeout_seconds: float = 10.0  # Upper bound for every store call

    # Scheduling
    timezone: str = "Asia/Kathmandu"  # Zone of booking_date + start_time
    grace_period_minutes: int = 15
    max_booking_duration_hours: int = 12
    sweep_interval_seconds: int = 60
    chat_poll_interval_seconds: float = 1.0

    # Messaging
    message_max_length: int = 2000

    # Admin Settings
    admin_user_ids: str = ""  # Comma-separated identity ids

    environment: str = "development"  # development, staging, production

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def is_admin(self, user_id: str) -> bool:
        """
        Check if an identity id is a configured admin.

        Args:
            user_id: Identity id to check

        Returns:
            True if user is admin, False otherwise
        """
        if not self.admin_user_ids or not user_id:
            return False
        admin_ids = [
            admin_id.strip()
            for admin_id in self.admin_user_ids.split(",")
            if admin_id.strip()
        ]
        return user_id in admin_ids

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.grace_period_minutes < 0:
            missing.append("grace_period_minutes")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
