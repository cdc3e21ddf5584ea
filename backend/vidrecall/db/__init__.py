"""Database utilities and session management."""

from vidrecall.db.base import Base, BaseModel
from vidrecall.db.session import (
    check_db_health,
    create_engine,
    create_session_factory,
    get_engine_config,
)

__all__ = [
    "Base",
    "BaseModel",
    "create_engine",
    "create_session_factory",
    "get_engine_config",
    "check_db_health",
]
