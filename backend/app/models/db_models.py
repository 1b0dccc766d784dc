"""
Notice Engine - SQLAlchemy ORM Models
Persisted letter batches, one per record selection
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from ..database import Base


class LetterBatchDB(Base):
    """
    Letters prepared from one selection of records.

    letters holds serialized LetterUnits (LetterUnit.to_dict) in grouping
    order; it is rewritten after every edit.
    """
    __tablename__ = "letter_batches"

    id = Column(String(36), primary_key=True)  # UUID

    letters = Column(JSON, nullable=False, default=list)
    validation_errors = Column(JSON, default=list)
    total_records = Column(Integer, default=0)
    valid_records = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
