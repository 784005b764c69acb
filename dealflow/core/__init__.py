"""Dealflow core: configuration and logging."""

from dealflow.core.config import DealflowConfig, get_config, set_config, reset_config
from dealflow.core.logging import setup_logging

__all__ = ["DealflowConfig", "get_config", "set_config", "reset_config", "setup_logging"]
