# WORKFLOW: Database connection handling for the price archive service.
# Used by: API lifespan, ingestion pipeline, export, health checks
# Database object:
# 1. session_factory - sessionmaker handed explicitly to the ingestion pipeline
# 2. init_db() - Create tables
# 3. check_db_connection() - Health check for database connectivity
# 4. dispose() - Release pooled connections on shutdown
#
# Database lifecycle:
# Startup: Database(url) -> init_db() -> app.state.database
# Runtime: session_factory() -> Session -> Query/Insert -> Close session
# Health checks: check_db_connection() -> Monitor connectivity

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite URLs (used by tests and local runs) get the thread flag needed
    by FastAPI's threadpool; PostgreSQL connections are pinned to UTC.
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {"options": "-c timezone=utc"}
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


class Database:
    """Owns the engine and session factory for one running service."""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = database_url or settings.sqlalchemy_database_url
        self.engine = build_engine(self.url, echo=settings.debug if echo is None else echo)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def session(self) -> Session:
        """Open a new session bound to this database."""
        return self.session_factory()

    def init_db(self) -> None:
        """
        Initialize database tables.
        """
        from db.models import Base

        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    def check_db_connection(self) -> bool:
        """
        Check if database connection is working.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")
