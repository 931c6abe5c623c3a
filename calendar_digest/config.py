from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

REQUIRED_KEYS = ("SPREADSHEET_ID", "CONFIG_SHEET_NAME")
MASKED_KEYS = ("SPREADSHEET_ID", "CONFIG_SHEET_NAME", "ADMIN_EMAIL", "SENDER_EMAIL", "SMTP_HOST")


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Configuration sheet
    SPREADSHEET_ID: str | None = None
    CONFIG_SHEET_NAME: str = "Config"

    # Google API access (Sheets, Calendar, Gmail)
    GOOGLE_ACCESS_TOKEN: str | None = None

    # Report and sender addresses
    ADMIN_EMAIL: str | None = None
    SENDER_EMAIL: str | None = None

    # SMTP fallback channel
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True

    # Timezone used for "midnight today" and weekday decisions
    EXECUTION_TIMEZONE: str = "UTC"

    # =================================================================
    # RETRY AND DELIVERY PACING
    # =================================================================
    RETRY_MAX_ATTEMPTS: int = 4  # 1 initial + 3 retries
    RETRY_BASE_DELAY_MS: int = 1000
    RETRY_MAX_JITTER_MS: int = 1000
    SEND_BATCH_SIZE: int = 10
    SEND_BATCH_PAUSE_MS: int = 100

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def validate_configuration(self) -> dict:
        """
        Check that the keys needed to locate the configuration sheet are set.

        Returns:
            dict: valid flag, missing and available key names, and a message
        """
        missing = []
        available = []

        for key in REQUIRED_KEYS:
            if getattr(self, key, None):
                available.append(key)
            else:
                missing.append(key)

        return {
            "valid": not missing,
            "missing": missing,
            "available": available,
            "message": (
                f"Missing required configuration: {', '.join(missing)}"
                if missing
                else "All required configuration is available"
            ),
        }

    def masked_summary(self) -> dict:
        """Configuration values safe to put in logs (identifiers truncated)."""
        summary = {}
        for key in MASKED_KEYS:
            value = getattr(self, key, None)
            if value and ("ID" in key or "EMAIL" in key):
                summary[key] = f"{value[:8]}..."
            else:
                summary[key] = value
        summary["EXECUTION_TIMEZONE"] = self.EXECUTION_TIMEZONE
        summary["has_google_access_token"] = bool(self.GOOGLE_ACCESS_TOKEN)
        return summary

    def retry_policy(self) -> dict:
        """Retry knobs in seconds, as consumed by RetryExecutor."""
        return {
            "max_attempts": self.RETRY_MAX_ATTEMPTS,
            "base_delay": self.RETRY_BASE_DELAY_MS / 1000,
            "max_jitter": self.RETRY_MAX_JITTER_MS / 1000,
        }

    def batch_policy(self) -> dict:
        """Batch knobs for BatchSender."""
        return {
            "batch_size": self.SEND_BATCH_SIZE,
            "batch_pause": self.SEND_BATCH_PAUSE_MS / 1000,
        }


settings = Settings()
