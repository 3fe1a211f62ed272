"""
rulegraph Configuration — pydantic-settings based.

Settings are read from RULEGRAPH_* environment variables or a .env file.
They only tune the PolicyEngine wrapper (audit log, cache, degraded mode);
resolution semantics depend on the rule document set alone.
"""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine-wrapper settings sourced from environment variables."""

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Level for configure_logging()")

    # ── Audit ──
    audit_log_enabled: bool = Field(
        default=False, description="Append every evaluation to the JSON-lines audit log"
    )
    audit_log_path: str = Field(
        default="rulegraph-audit.jsonl", description="Path to JSON-lines audit log file"
    )

    # ── Policy Cache ──
    policy_cache_enabled: bool = Field(
        default=True, description="Cache effective policies per graph snapshot"
    )
    policy_cache_ttl_seconds: int = Field(
        default=3600, description="Time-to-live for cached effective policies"
    )
    policy_cache_max_entries: int = Field(
        default=4096, description="Entries kept before the oldest are evicted"
    )

    # ── Startup ──
    degraded_mode: bool = Field(
        default=False,
        description="On an invalid initial document set, block every evaluation instead of raising",
    )

    model_config = {
        "env_prefix": "RULEGRAPH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance — imported by other modules
settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the standard rulegraph log format on the root logger."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
