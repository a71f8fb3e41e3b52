"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: token_secret has no default - it MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str = "sqlite:///./nightpass.db"

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # TELEGRAM BOT
    # ===========================================
    telegram_bot_token: str = ""
    # Username without @, used for t.me deep links. Example: zboxrobot
    telegram_bot_username: str = ""
    # Owner receives visitor notifications and forwarded uploads from strangers.
    owner_telegram_id: str = ""
    # Group where new media is uploaded; every photo/video posted there is ingested.
    upload_group_id: str = ""
    # Private channels a user must join before getting a pass (comma-separated ids). Empty = no check.
    private_channel_ids: str = ""
    # Invite links shown to users who are not members yet (comma-separated, same order as ids).
    channel_invite_links: str = ""
    # Link shown on the "how to unlock" button
    help_url: str = ""

    # ===========================================
    # ACCESS TOKENS & PASS
    # ===========================================
    token_secret: str  # Required, no default
    token_ttl_hours: int = 18
    access_window_hours: int = 18

    # ===========================================
    # AD GATE (EarnLinks-compatible shortener)
    # ===========================================
    ad_enabled: bool = True
    ad_gate_domain: str = "earnlinks.in"
    ad_gate_api_token: str = ""

    # ===========================================
    # DELIVERY
    # ===========================================
    retraction_delay_seconds: int = 900  # 15 min
    retraction_sweep_interval_seconds: float = 30.0
    retraction_sweep_batch_size: int = 100

    # ===========================================
    # BROADCAST
    # ===========================================
    broadcast_delay_seconds: float = 0.1
    active_user_window_days: int = 30

    # ===========================================
    # INTERNAL SERVICES
    # ===========================================
    http_client_timeout: float = 10.0
    membership_check_timeout: float = 5.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30
    cb_storage: str = "redis"  # redis, memory

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("token_secret")
    @classmethod
    def validate_token_secret(cls, v: str) -> str:
        """Ensure token secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("token_secret must be at least 16 characters")
        if v in ("default-secret-change-in-production", "changeme-changeme", "secretsecretsecret"):
            raise ValueError("token_secret is too weak, please change it")
        return v

    @field_validator("cb_storage")
    @classmethod
    def validate_cb_storage(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("redis", "memory"):
            raise ValueError("cb_storage must be 'redis' or 'memory'")
        return v

    @property
    def private_channel_ids_list(self) -> list[str]:
        """Get private channel ids as a list (order preserved)."""
        return [c.strip() for c in self.private_channel_ids.split(",") if c.strip()]

    @property
    def channel_invite_links_list(self) -> list[str]:
        return [link.strip() for link in self.channel_invite_links.split(",") if link.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
