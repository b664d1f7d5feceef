"""
CARE OS application settings.

Extends the base settings with wellbeing-pipeline configuration.
"""

from typing import Optional
from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """CARE OS-specific settings."""

    # ==========================================================================
    # Storage
    # ==========================================================================
    STORAGE_BACKEND: str = "mongodb"  # "mongodb" or "memory"

    # ==========================================================================
    # Messaging
    # ==========================================================================
    MESSENGER_BACKEND: str = "log"  # "log" or "webhook"
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # ==========================================================================
    # Guardrails
    # ==========================================================================
    GUARDRAIL_LOG_LEVEL: str = "normal"  # verbose, normal, silent

    # ==========================================================================
    # Deviation Detection
    # ==========================================================================
    DEVIATION_LOOKBACK_DAYS: int = 7
    DEVIATION_THRESHOLD_PERCENT: float = 25.0
    DEVIATION_DEDUP_WINDOW_DAYS: int = 7
    DEVIATION_SWEEP_CONCURRENCY: int = 5

    # ==========================================================================
    # Insights
    # ==========================================================================
    INSIGHT_DEFAULT_RANGE_DAYS: int = 30

    def validate_required(self) -> None:
        """
        Validate that required settings are configured.

        Raises:
            ValueError: If required settings are missing
        """
        errors = []

        if self.STORAGE_BACKEND not in ("mongodb", "memory"):
            errors.append(f"Unknown STORAGE_BACKEND: {self.STORAGE_BACKEND}")

        if self.MESSENGER_BACKEND not in ("log", "webhook"):
            errors.append(f"Unknown MESSENGER_BACKEND: {self.MESSENGER_BACKEND}")

        if self.MESSENGER_BACKEND == "webhook" and not self.NOTIFY_WEBHOOK_URL:
            errors.append("NOTIFY_WEBHOOK_URL is required when using the webhook messenger")

        if self.DEVIATION_LOOKBACK_DAYS < 1:
            errors.append("DEVIATION_LOOKBACK_DAYS must be at least 1")

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))


# Global settings instance
settings = Settings()
