# WORKFLOW: Typed records passed between the ingestion stages.
# Used by: Record validator, ingestion pipeline, API response building
# Models include:
# 1. PriceRecord - One validated CSV row, ready for insertion
# 2. RowRejection - Structured diagnostic for a skipped row or member
# 3. IngestionResult - Aggregate counters for one ingestion pass
#
# Flow: CSV row -> PriceRecord | RowRejection -> IngestionResult

from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field


class RejectionReason(str, Enum):
    MALFORMED_ROW = "malformed_row"
    INVALID_PRICE = "invalid_price"
    UNPARSEABLE_ROW = "unparseable_row"
    MISSING_HEADER = "missing_header"


class PriceRecord(BaseModel):
    """A validated price row. The external id in column 0 is not kept."""
    name: str
    category: str
    price: float
    create_date: str


class RowRejection(BaseModel):
    """Why a row (or a whole member) was skipped during ingestion."""
    member: str = Field(..., description="Archive member name")
    line: Optional[int] = Field(None, description="CSV line number, if known")
    reason: RejectionReason
    detail: str = ""


class IngestionResult(BaseModel):
    """Counters produced by a successful ingestion pass."""
    item_count: int = 0
    categories: Set[str] = Field(default_factory=set)
    total_price: float = 0.0
    rejections: List[RowRejection] = Field(default_factory=list)

    @property
    def category_count(self) -> int:
        return len(self.categories)

    @property
    def rows_skipped(self) -> int:
        return len(self.rejections)

    def add(self, record: PriceRecord) -> None:
        """Account for one inserted record."""
        self.item_count += 1
        self.categories.add(record.category)
        self.total_price += record.price
