# WORKFLOW: Export of stored prices as a zipped CSV file.
# Used by: GET /api/v0/prices
# Functions:
# 1. write_prices_csv() - Serialize price rows with a fixed header
# 2. export_prices_zip() - Query all prices and pack data.csv into a ZIP archive
#
# Export flow: SELECT prices -> CSV (id, name, category, price, create_date) -> data.csv -> ZIP bytes
# Prices are always written with exactly two decimal digits.

"""
Export of stored prices as a zipped CSV file.
"""

import csv
import io
import logging
import zipfile
from typing import Iterable, TextIO

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import ExportError
from db.models import Price

logger = logging.getLogger(__name__)

EXPORT_HEADER = ["id", "name", "category", "price", "create_date"]
EXPORT_MEMBER_NAME = "data.csv"
EXPORT_FILENAME = "data.zip"


def write_prices_csv(rows: Iterable, out: TextIO) -> int:
    """
    Write price rows as CSV.

    Args:
        rows: Rows exposing id, name, category, price and create_date
        out: Text stream to write to

    Returns:
        Number of data rows written
    """
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    count = 0
    for row in rows:
        writer.writerow([row.id, row.name, row.category, f"{row.price:.2f}", row.create_date])
        count += 1
    return count


def export_prices_zip(db: Session) -> bytes:
    """
    Build a ZIP archive with every stored price in data.csv.

    Args:
        db: Database session

    Returns:
        ZIP archive bytes

    Raises:
        ExportError: If prices cannot be read from the database
    """
    statement = select(
        Price.id, Price.name, Price.category, Price.price, Price.create_date
    ).order_by(Price.id)

    csv_buffer = io.StringIO(newline="")
    try:
        count = write_prices_csv(db.execute(statement), csv_buffer)
    except SQLAlchemyError as e:
        logger.error(f"Failed to read prices for export: {e}")
        raise ExportError(f"Failed to read prices: {e}") from e

    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(EXPORT_MEMBER_NAME, csv_buffer.getvalue())

    logger.info(f"Exported {count} prices to {EXPORT_MEMBER_NAME}")
    return zip_buffer.getvalue()
