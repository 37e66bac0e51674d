"""Configuration module for PaceBot."""

from pacebot.config.loader import load_config, save_config, get_config_path
from pacebot.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
