"""
Configuration for the Tracklog Console.

Uses pydantic-settings for environment variable loading. Tracker
settings (store, data directory, logging) come from TrackerConfig.from_env().
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Console configuration loaded from environment."""

    # Console settings
    host: str = Field(default="0.0.0.0", description="Console bind host")
    port: int = Field(default=8080, description="Console bind port")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Username stamped on versions and executed statements when the
    # request does not name one
    default_username: str = Field(default="root", description="Default acting username")

    model_config = {"env_prefix": "TRACKLOG_CONSOLE_"}
