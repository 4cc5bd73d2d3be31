# WORKFLOW: Transactional sink that writes validated prices inside one transaction.
# Used by: Ingestion pipeline (one sink per ingestion call)
# Operations:
# 1. insert() - Parameterized single-row INSERT into prices
# 2. commit() - Finalize a clean pass
# 3. rollback() - Discard everything written in this pass
#
# Transaction flow: __enter__ -> BEGIN -> insert()* -> commit() | rollback() -> close session
# Leaving the with-block without commit() always rolls back, whatever the exit path.

"""
Transactional sink for validated price records.
"""

import logging

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import PersistenceError
from db.models import Price
from etl.records import PriceRecord

logger = logging.getLogger(__name__)


class TransactionalSink:
    """Owns one session and the single transaction every insert goes through."""

    def __init__(self, session: Session):
        self.session = session
        self.inserted = 0
        self._finalized = False

    def __enter__(self) -> "TransactionalSink":
        self.session.begin()
        logger.info("Ingestion transaction started")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if not self._finalized:
                if exc is not None:
                    logger.error(f"Rolling back ingestion transaction after {exc_type.__name__}: {exc}")
                self.rollback()
        finally:
            self.session.close()

    def insert(self, record: PriceRecord) -> None:
        """
        Insert one record.

        Raises:
            PersistenceError: If the store rejects the insert
        """
        statement = insert(Price).values(
            name=record.name,
            category=record.category,
            price=record.price,
            create_date=record.create_date,
        )
        try:
            self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to insert price {record.name!r}: {e}") from e
        self.inserted += 1

    def commit(self) -> None:
        """
        Commit the transaction.

        Raises:
            PersistenceError: If the commit fails; the transaction is then rolled back
        """
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to commit ingestion transaction: {e}") from e
        self._finalized = True
        logger.info(f"Ingestion transaction committed ({self.inserted} rows)")

    def rollback(self) -> None:
        self._finalized = True
        self.session.rollback()
        logger.info(f"Ingestion transaction rolled back ({self.inserted} rows discarded)")
