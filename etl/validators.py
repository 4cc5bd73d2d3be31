# WORKFLOW: Row validation for price CSV files.
# Used by: Ingestion pipeline (one call per data row)
# Functions:
# 1. validate_price_row() - Check column count and price, build a PriceRecord
# 2. parse_price() - Lax float parsing of the price column
#
# Validation flow: CSV row -> Column count check -> Price parse -> PriceRecord
# Rejections are returned, never raised, so the pipeline can skip the row and continue.
# Price sign and create_date format are deliberately not checked; NaN and infinities are rejected.

"""
Row validation for price CSV files.
"""

import math
from typing import List, Optional, Tuple

from etl.records import PriceRecord, RejectionReason

# Columns: external id, name, category, price, create date
MIN_COLUMNS = 5
NAME_COLUMN = 1
CATEGORY_COLUMN = 2
PRICE_COLUMN = 3
CREATE_DATE_COLUMN = 4

ValidationOutcome = Tuple[Optional[PriceRecord], Optional[RejectionReason], str]


def parse_price(value: str) -> Optional[float]:
    """
    Parse the price column.

    Args:
        value: Raw price field

    Returns:
        The price as float, or None if it does not parse to a finite number
    """
    # float() also takes padded and underscore-grouped digits; those stay invalid
    if not isinstance(value, str) or value != value.strip() or "_" in value:
        return None
    try:
        price = float(value)
    except ValueError:
        return None
    if not math.isfinite(price):
        return None
    return price


def validate_price_row(row: List[str]) -> ValidationOutcome:
    """
    Validate one tokenized CSV data row.

    Args:
        row: Ordered CSV fields (header already discarded)

    Returns:
        (record, None, "") when accepted, or (None, reason, detail) when rejected
    """
    if len(row) < MIN_COLUMNS:
        return None, RejectionReason.MALFORMED_ROW, f"expected at least {MIN_COLUMNS} fields, got {len(row)}"

    price = parse_price(row[PRICE_COLUMN])
    if price is None:
        return None, RejectionReason.INVALID_PRICE, f"cannot parse price {row[PRICE_COLUMN]!r}"

    record = PriceRecord(
        name=row[NAME_COLUMN],
        category=row[CATEGORY_COLUMN],
        price=price,
        create_date=row[CREATE_DATE_COLUMN],
    )
    return record, None, ""
