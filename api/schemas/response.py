# WORKFLOW: Pydantic response schemas for the price endpoints.
# Used by: POST /api/v0/prices, API tests
# Schemas include:
# 1. IngestionResponse - Aggregate counters returned after a successful upload
#
# Response flow: IngestionResult -> IngestionResponse -> JSON

from pydantic import BaseModel, Field

from etl.records import IngestionResult


class IngestionResponse(BaseModel):
    """Counters for one ingested archive."""
    total_items: int = Field(..., ge=0, description="Rows successfully inserted")
    total_categories: int = Field(..., ge=0, description="Distinct categories among inserted rows")
    total_price: float = Field(..., description="Sum of inserted prices")

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResponse":
        return cls(
            total_items=result.item_count,
            total_categories=result.category_count,
            total_price=result.total_price,
        )
