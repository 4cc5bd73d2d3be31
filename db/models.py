# WORKFLOW: Database models for the price archive schema.
# Used by: Transactional sink (inserts), CSV export (reads), API tests
# Models represent:
# 1. prices - one row per accepted CSV record (name, category, price, create_date)
#
# Data flow: Archive -> CSV rows -> Validator -> prices table -> CSV/ZIP export

from sqlalchemy import Column, Integer, String, Float, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Price(Base):
    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    category = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    create_date = Column(String(32), nullable=False)  # stored as received, no date parsing

    __table_args__ = (
        Index('idx_prices_category', 'category'),
    )
