"""
Dealflow Configuration

Settings for the workflow engine with:
- Environment-based configuration (DEALFLOW_ prefix)
- Type-safe settings with Pydantic
- JSON file loading
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels for Dealflow."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DealflowConfig(BaseSettings):
    """Main configuration for the workflow engine."""

    log_level: LogLevel = LogLevel.INFO

    # Approver used when an approval step names no role
    default_approver_role: str = "manager"

    # Evaluate template automation rules on execution events
    automation_rules_enabled: bool = True

    # Reject duplicate ids and non-preceding dependencies at register time
    validate_templates: bool = True

    max_concurrent_executions: int = Field(default=100, ge=1)

    # Load the built-in templates into a fresh engine
    register_builtin_templates: bool = False

    model_config = {
        "env_prefix": "DEALFLOW_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @field_validator("default_approver_role")
    @classmethod
    def ensure_role(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("default_approver_role must not be empty")
        return v.strip()

    @classmethod
    def from_file(cls, config_path: Path) -> "DealflowConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = json.load(f)

        return cls(**config_data)

    def to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)


# Global configuration instance (lazy loaded)
_config: Optional[DealflowConfig] = None


def get_config() -> DealflowConfig:
    """Get the global Dealflow configuration instance."""
    global _config
    if _config is None:
        _config = DealflowConfig()
    return _config


def set_config(config: DealflowConfig) -> None:
    """Set the global Dealflow configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to default."""
    global _config
    _config = None
