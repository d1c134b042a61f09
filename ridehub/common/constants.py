# ridehub/common/constants.py
"""
Common constants and enumerations.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Log message types."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Service name used in health checks and log file names
SERVICE_NAME = "ridehub"

# Default logger name
LOGGER_NAME = "ridehub"

# Tracking session identifiers: TRK_<epoch millis>_<suffix>
SESSION_ID_PREFIX = "TRK"
SESSION_ID_SUFFIX_LENGTH = 9

DEFAULT_PAUSE_REASON = "Manual pause"

# Earth radius used by the haversine formula, km
EARTH_RADIUS_KM = 6371.0

# WebSocket close code for rejected handshakes (policy violation)
WS_POLICY_VIOLATION = 1008

# Advisory lock id used while applying migrations/init.sql
SCHEMA_LOCK_ID = 734120955
