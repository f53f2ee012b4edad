"""Application configuration."""

from xmr_pos.config.settings import AppConfig

__all__ = ["AppConfig"]
