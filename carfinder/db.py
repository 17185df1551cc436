# carfinder/db.py
"""Database engine and session utilities.

The engine is built once from ``DATABASE_URL``. SQLite URLs (used by the test
suite and local experiments) share a single connection so an in-memory
database survives across sessions and threads.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .settings import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL not set")

# SQLAlchemy 2.x doesn't accept the 'postgres://' scheme
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        pool_pre_ping=True
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
