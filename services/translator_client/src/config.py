"""
Configuration management for the translator client.

Provides centralized configuration for the translation API endpoint,
timer cadences, upload rules, payment provider and persisted-state storage.
"""

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

STORAGE_BACKENDS = ("memory", "file", "redis")


@dataclass
class APIConfig:
    """Configuration for the remote translation API."""

    base_url: str = "http://localhost:8000"
    request_timeout: float | None = None  # No client-side timeout
    user_agent: str = "translator-client/1.0"


@dataclass
class PollingConfig:
    """Cadences of the periodic refreshers, in seconds."""

    task_poll_interval: float = 2.0
    documents_poll_interval: float = 5.0
    quota_refresh_interval: float = 30.0


@dataclass
class ProgressConfig:
    """Fabricated progress ramps and job hand-off delays."""

    upload_step: int = 10
    upload_interval: float = 0.2
    translate_step: int = 15
    translate_interval: float = 0.3
    cap: int = 90
    translate_delay: float = 0.5
    reset_delay: float = 1.0


@dataclass
class UploadConfig:
    """Rules applied to a selected document before upload."""

    allowed_extensions: list[str] = field(default_factory=lambda: [".docx"])
    default_source_lang: str = "auto"
    default_target_lang: str = "af"


@dataclass
class PaymentConfig:
    """Configuration for the external payment provider."""

    provider_url: str = "https://www.payfast.co.za/eng/process"
    tier_urls: dict[str, str] = field(default_factory=dict)
    merchant_id: str = "10000100"
    merchant_key: str = "46f0cd694581a"
    return_url: str = "http://localhost:5173/success"
    cancel_url: str = "http://localhost:5173/cancel"
    notify_url: str = "http://localhost:8000/payment/notify"


@dataclass
class StorageConfig:
    """Configuration for the persisted session record."""

    backend: str = "file"
    file_path: str = "~/.translator_client/session.json"
    redis_url: str = "redis://localhost:6379/0"
    redis_key: str = "translator_client:session"


@dataclass
class ClientConfig:
    """Main configuration for the translator client."""

    api: APIConfig = field(default_factory=APIConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Client-level settings
    log_level: str = "INFO"
    notice_ttl: float = 5.0

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create configuration from environment variables.

        Environment variables follow the pattern:
        TRANSLATOR_<SECTION>_<SETTING>

        Examples:
        - TRANSLATOR_API_BASE_URL=https://translate.example.com
        - TRANSLATOR_POLLING_TASK_POLL_INTERVAL=1.5
        - TRANSLATOR_PAYMENT_TIER_URL_PROFESSIONAL=https://pay.example.com/pro
        - TRANSLATOR_STORAGE_BACKEND=redis
        """
        config = cls()

        # API configuration
        config.api.base_url = os.getenv("TRANSLATOR_API_BASE_URL", config.api.base_url)
        if val := os.getenv("TRANSLATOR_API_REQUEST_TIMEOUT"):
            config.api.request_timeout = float(val)
        config.api.user_agent = os.getenv("TRANSLATOR_API_USER_AGENT", config.api.user_agent)

        # Polling configuration
        if val := os.getenv("TRANSLATOR_POLLING_TASK_POLL_INTERVAL"):
            config.polling.task_poll_interval = float(val)
        if val := os.getenv("TRANSLATOR_POLLING_DOCUMENTS_POLL_INTERVAL"):
            config.polling.documents_poll_interval = float(val)
        if val := os.getenv("TRANSLATOR_POLLING_QUOTA_REFRESH_INTERVAL"):
            config.polling.quota_refresh_interval = float(val)

        # Progress configuration
        if val := os.getenv("TRANSLATOR_PROGRESS_UPLOAD_STEP"):
            config.progress.upload_step = int(val)
        if val := os.getenv("TRANSLATOR_PROGRESS_UPLOAD_INTERVAL"):
            config.progress.upload_interval = float(val)
        if val := os.getenv("TRANSLATOR_PROGRESS_TRANSLATE_STEP"):
            config.progress.translate_step = int(val)
        if val := os.getenv("TRANSLATOR_PROGRESS_TRANSLATE_INTERVAL"):
            config.progress.translate_interval = float(val)
        if val := os.getenv("TRANSLATOR_PROGRESS_CAP"):
            config.progress.cap = int(val)
        if val := os.getenv("TRANSLATOR_PROGRESS_RESET_DELAY"):
            config.progress.reset_delay = float(val)

        # Upload configuration
        if val := os.getenv("TRANSLATOR_UPLOAD_ALLOWED_EXTENSIONS"):
            config.upload.allowed_extensions = [ext.strip().lower() for ext in val.split(",") if ext.strip()]
        config.upload.default_source_lang = os.getenv(
            "TRANSLATOR_UPLOAD_DEFAULT_SOURCE_LANG", config.upload.default_source_lang
        )
        config.upload.default_target_lang = os.getenv(
            "TRANSLATOR_UPLOAD_DEFAULT_TARGET_LANG", config.upload.default_target_lang
        )

        # Payment configuration
        config.payment.provider_url = os.getenv("TRANSLATOR_PAYMENT_PROVIDER_URL", config.payment.provider_url)
        config.payment.merchant_id = os.getenv("TRANSLATOR_PAYMENT_MERCHANT_ID", config.payment.merchant_id)
        config.payment.merchant_key = os.getenv("TRANSLATOR_PAYMENT_MERCHANT_KEY", config.payment.merchant_key)
        config.payment.return_url = os.getenv("TRANSLATOR_PAYMENT_RETURN_URL", config.payment.return_url)
        config.payment.cancel_url = os.getenv("TRANSLATOR_PAYMENT_CANCEL_URL", config.payment.cancel_url)
        config.payment.notify_url = os.getenv("TRANSLATOR_PAYMENT_NOTIFY_URL", config.payment.notify_url)
        for tier in ("professional", "enterprise"):
            if val := os.getenv(f"TRANSLATOR_PAYMENT_TIER_URL_{tier.upper()}"):
                config.payment.tier_urls[tier] = val

        # Storage configuration
        config.storage.backend = os.getenv("TRANSLATOR_STORAGE_BACKEND", config.storage.backend).lower()
        config.storage.file_path = os.getenv("TRANSLATOR_STORAGE_FILE_PATH", config.storage.file_path)
        config.storage.redis_url = os.getenv("TRANSLATOR_STORAGE_REDIS_URL", config.storage.redis_url)
        config.storage.redis_key = os.getenv("TRANSLATOR_STORAGE_REDIS_KEY", config.storage.redis_key)

        # Client-level settings
        config.log_level = os.getenv("TRANSLATOR_LOG_LEVEL", config.log_level)
        if val := os.getenv("TRANSLATOR_NOTICE_TTL"):
            config.notice_ttl = float(val)

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return any errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # Validate API settings
        parsed = urlparse(self.api.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("API base_url must be an absolute http(s) URL")
        if self.api.request_timeout is not None and self.api.request_timeout <= 0:
            errors.append("API request_timeout must be positive when set")

        # Validate polling settings
        if self.polling.task_poll_interval <= 0:
            errors.append("Polling task_poll_interval must be positive")
        if self.polling.documents_poll_interval <= 0:
            errors.append("Polling documents_poll_interval must be positive")
        if self.polling.quota_refresh_interval <= 0:
            errors.append("Polling quota_refresh_interval must be positive")

        # Validate progress settings
        if not 1 <= self.progress.cap <= 99:
            errors.append("Progress cap must be between 1 and 99")
        if self.progress.upload_step <= 0 or self.progress.translate_step <= 0:
            errors.append("Progress steps must be positive")
        if self.progress.upload_interval <= 0 or self.progress.translate_interval <= 0:
            errors.append("Progress intervals must be positive")
        if self.progress.translate_delay < 0 or self.progress.reset_delay < 0:
            errors.append("Progress delays must be non-negative")

        # Validate upload settings
        if not self.upload.allowed_extensions:
            errors.append("Upload allowed_extensions must not be empty")
        elif any(not ext.startswith(".") for ext in self.upload.allowed_extensions):
            errors.append("Upload allowed_extensions must start with '.'")

        # Validate storage settings
        if self.storage.backend not in STORAGE_BACKENDS:
            errors.append(f"Storage backend must be one of {', '.join(STORAGE_BACKENDS)}")

        if self.notice_ttl <= 0:
            errors.append("notice_ttl must be positive")

        return errors


# Global configuration instance
_config: ClientConfig | None = None


def get_config() -> ClientConfig:
    """Get the global configuration instance.

    Creates the configuration from environment variables on first call.
    """
    global _config  # noqa: PLW0603  # Global config pattern for application configuration
    if _config is None:
        _config = ClientConfig.from_env()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance.

    Useful for testing or when loading configuration from files.
    """
    global _config  # noqa: PLW0603  # Global config pattern for application configuration
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance.

    The next call to get_config() will recreate from environment.
    """
    global _config  # noqa: PLW0603  # Global config pattern for application configuration
    _config = None
