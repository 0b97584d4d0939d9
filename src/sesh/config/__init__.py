"""Configuration management module."""

from .loader import HostConfig, SeshConfig, find_config_file, load_config, save_config

__all__ = ["HostConfig", "SeshConfig", "load_config", "save_config", "find_config_file"]
