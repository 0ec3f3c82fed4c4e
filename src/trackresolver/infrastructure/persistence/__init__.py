"""Persistence layer - SQLAlchemy async engine, models and repositories."""

from .database import Database
from .models import Base, EnrichmentRecordModel
from .repositories import EnrichmentRecordRepository
from .retry import is_lock_error, with_db_retry

__all__ = [
    "Base",
    "Database",
    "EnrichmentRecordModel",
    "EnrichmentRecordRepository",
    "is_lock_error",
    "with_db_retry",
]
