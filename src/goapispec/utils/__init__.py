"""goapispec utilities."""

from goapispec.utils.logging import LogMode, get_logger, setup_logging

__all__ = ["LogMode", "get_logger", "setup_logging"]
