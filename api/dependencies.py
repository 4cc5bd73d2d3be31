# WORKFLOW: FastAPI dependencies shared by the routers.
# Used by: Price and health routers
# Functions:
# 1. get_database() - The Database built at startup (app.state.database)
# 2. get_db() - Per-request session that is always closed after use

from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session
import logging

from db.session import Database

logger = logging.getLogger(__name__)


def get_database(request: Request) -> Database:
    """Return the Database created in the application lifespan."""
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency to get database session.
    Yields a database session and ensures it's closed after use.
    """
    db = get_database(request).session()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
