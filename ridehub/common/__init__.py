# ridehub/common/__init__.py
"""
Common utilities, constants, exceptions and the logger.
"""

from ridehub.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from ridehub.common.constants import TypeMsg

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
]
