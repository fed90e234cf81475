# osoul/database/db.py
import logging
from contextlib import contextmanager
from pathlib import Path

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

SCHEMA_FILE = Path(__file__).with_name("schema.sql")


class Database:
    """
    Engine + session factory built once at startup and passed around
    explicitly (app.state.db). `dispose()` releases the pool on shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        # connect_args only for SQLite
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        # pool_pre_ping helps with hosted servers that put idle connections to sleep
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def session(self) -> Session:
        return self.SessionLocal()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def create_all(self) -> None:
        # Registers the models on Base before creating tables
        from osoul.models import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def run_schema_file(self, path: Path = SCHEMA_FILE) -> None:
        """Runs the static DDL file once (PostgreSQL)."""
        sql = path.read_text(encoding="utf-8")
        with self.engine.begin() as conn:
            conn.exec_driver_sql(sql)
        logger.info("Schema applied from %s", path)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    All-or-nothing unit of work over an open session: commit on success,
    rollback and re-raise on any error.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
