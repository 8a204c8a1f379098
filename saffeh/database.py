# saffeh/database.py
"""
Local storage engine, session factory, and table creation.
Uses SQLAlchemy; the default is a SQLite file next to the working directory.
The only table is the credential key/value store.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from saffeh.config import settings

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
    echo=False,                  # Set True to log all SQL queries (debug only)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def create_tables(bind=None):
    """
    Creates the local tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from saffeh.models.credential import StoredCredential   # noqa

    Base.metadata.create_all(bind=bind or engine)
