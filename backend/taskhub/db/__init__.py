"""Database package."""

from taskhub.db.base import Base, BaseModel, utcnow
from taskhub.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "get_db_session", "utcnow"]
