"""Database package."""
from rollcall.db.session import engine, SessionLocal, get_db, get_db_context
from rollcall.db.base import Base

__all__ = ["engine", "SessionLocal", "get_db", "get_db_context", "Base"]
