# ridehub/infra/__init__.py
"""
Infrastructure: PostgreSQL access.
"""

from ridehub.infra.database import DatabaseManager, get_db, init_db, close_db

__all__ = ["DatabaseManager", "get_db", "init_db", "close_db"]
