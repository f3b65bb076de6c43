"""Database layer for the reservation booking engine."""

from .base import Base, TimestampMixin
from .models_sqlalchemy import DiningTable, Reservation, AuditLog
from .session import (
    engine,
    SessionLocal,
    create_db_engine,
    create_session_factory,
    session_scope,
    init_db,
    drop_db,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Models
    "DiningTable",
    "Reservation",
    "AuditLog",
    # Session
    "engine",
    "SessionLocal",
    "create_db_engine",
    "create_session_factory",
    "session_scope",
    "init_db",
    "drop_db",
]
