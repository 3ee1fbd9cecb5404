from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ------------------------------------------------------------------
    # Connector mode
    # ------------------------------------------------------------------
    # "simulator": action handlers return stub acknowledgments (default)
    # "live":      http_request performs real requests; slack_message posts
    #               to Slack when SLACK_BOT_TOKEN is set
    connector_mode: Literal["simulator", "live"] = "simulator"
    http_timeout: float = 30.0

    # ------------------------------------------------------------------
    # Slack credentials
    # ------------------------------------------------------------------
    slack_bot_token: Optional[str] = None   # xoxb-...

    # ------------------------------------------------------------------
    # Engine behaviour
    # ------------------------------------------------------------------
    traversal_mode: Literal["depth_first", "linear"] = "depth_first"
    branch_routing: bool = False            # follow only the matching if_else edge
    handler_timeout: Optional[float] = None  # seconds per node, None = no limit
    max_execution_logs: Optional[int] = 1000

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------
    workflows_dir: Optional[Path] = None    # defaults to <repo>/workflows
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
