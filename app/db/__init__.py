"""
Database module for TCT.
"""
from app.db.database import Base, engine, async_session_maker, get_async_session, worker_session

__all__ = ["Base", "engine", "async_session_maker", "get_async_session", "worker_session"]
