"""Logging section of the run configuration."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class LoggingConfig(BaseModel):
    """Where and how the ``dropship_ledger`` logger writes.

    Ledger insolvency warnings and the default event sink's alerts and
    protective actions all flow through this logger.
    """

    enabled: bool = Field(default=True, description="Configure the package logger at all")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum level written"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path, None for no file")
    console_output: bool = Field(default=True, description="Also write to stdout")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="logging.Formatter format string",
    )
    date_format: Optional[str] = Field(
        default=None, description="logging.Formatter datefmt, None for the default"
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_case_level(cls, v):
        """Accept ``level: debug`` in run files."""
        return v.upper() if isinstance(v, str) else v
