# FILE: ragcore/db.py
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ragcore.config import DATABASE_URL

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str = DATABASE_URL, echo: bool = False) -> Engine:
    """
    Build an engine for url.

    SQLite connections get check_same_thread disabled (the ranker and embedding
    pool touch sessions from worker threads) and foreign keys switched on so
    deletes cascade. In-memory SQLite shares one connection across sessions.
    """
    kwargs = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            # sqlite:///./data/rag.db -> ./data must exist before first connect
            path = url.split("///", 1)[-1]
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)

    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(url: str = DATABASE_URL, echo: bool = False) -> sessionmaker:
    engine = create_db_engine(url, echo=echo)
    return sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)


def init_db(session_factory: sessionmaker) -> None:
    """Create all tables on the factory's engine."""
    # Import models so Base.metadata knows about them
    from ragcore.store import models  # noqa: F401
    Base.metadata.create_all(bind=session_factory.kw["bind"])
