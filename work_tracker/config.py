"""
Configuration management for the work tracker.

Field names match their environment variables (case-insensitive), e.g.
``WORK_TRACKER_ROOT`` or ``HOOK_TIMEOUT_SECONDS``.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Storage
    work_tracker_root: str = Field(
        default=".claude-work", description="Primary storage root"
    )
    work_tracker_extra_roots: str = Field(
        default="",
        description="Comma-separated list of additional storage roots to aggregate.",
    )
    capture_git_context: bool = Field(default=False)

    # Hooks
    hooks_enabled: bool = Field(default=True)
    hook_timeout_seconds: float = Field(default=5.0)
    hook_continue_on_error: bool = Field(default=True)
    hook_max_concurrent: int = Field(default=10)

    # Updates journal
    update_author: str = Field(
        default="automation", description="Author recorded on automatic updates"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="'console' or 'json'")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def all_roots(self) -> List[str]:
        """Primary root followed by any extra roots, without duplicates."""
        roots = [self.work_tracker_root]
        for raw in self.work_tracker_extra_roots.split(","):
            raw = raw.strip()
            if raw and raw not in roots:
                roots.append(raw)
        return roots


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
