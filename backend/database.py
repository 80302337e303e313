"""
Database engine and session management.

The engine is configured from DATABASE_URL. PostgreSQL is used in deployment;
SQLite works for local development and is what the test suite runs against.
"""

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./task_manager.db")

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across FastAPI's threadpool workers
    connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a request-scoped session and always close it afterwards."""
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
