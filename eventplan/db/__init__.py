"""
Database engine and session management.
"""

from eventplan.db.database import SessionLocal, build_engine, get_db, init_db, dispose_engine

__all__ = [
    "SessionLocal",
    "build_engine",
    "get_db",
    "init_db",
    "dispose_engine",
]
