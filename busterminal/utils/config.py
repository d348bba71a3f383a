"""
Environment configuration loader with validation for the bus terminal core.

Configuration is loaded once at startup and handed to the composition root;
services receive the values they need explicitly.
"""

import logging
import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class TerminalConfig(BaseModel):
    """Configuration model for the bus terminal core with validation."""

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None,
        description="Database connection URL; None builds it from DB_* variables",
    )
    database_echo: bool = Field(default=False, description="Log emitted SQL")

    # Reservation Configuration
    booking_hold_hours: int = Field(
        default=24, ge=1, description="Hours a BOOKED ticket holds its seat"
    )

    # Application Configuration
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {VALID_LOG_LEVELS}")
        return v.upper()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def load_config(env_file: Optional[str] = None) -> TerminalConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        TerminalConfig: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "database_url": os.getenv("DATABASE_URL") or None,
        "database_echo": _env_flag("DATABASE_ECHO", "false"),
        "booking_hold_hours": os.getenv("BOOKING_HOLD_HOURS", "24"),
        "debug": _env_flag("TERMINAL_DEBUG", "false"),
        "log_level": os.getenv("TERMINAL_LOG_LEVEL", "INFO"),
    }

    try:
        return TerminalConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup."""
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
    # SQLAlchemy engine logging is driven by the echo flag instead
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
