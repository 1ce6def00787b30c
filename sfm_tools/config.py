"""Configuration for the SFM level tools."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in _TRUE_VALUES


@dataclass
class Config:
    """Tool configuration."""

    log_level: str = "WARNING"
    log_file: Optional[Path] = None
    json_logs: bool = False
    pretty: bool = False
    xml_declaration: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        log_file = os.getenv("SFM_LOG_FILE")

        return cls(
            log_level=os.getenv("SFM_LOG_LEVEL", cls.log_level),
            log_file=Path(log_file) if log_file else None,
            json_logs=_env_flag("SFM_JSON_LOGS"),
            pretty=_env_flag("SFM_PRETTY"),
            xml_declaration=_env_flag("SFM_XML_DECLARATION"),
        )
