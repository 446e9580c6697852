from sqlalchemy import Column, Integer, String, Text, JSON, DateTime
from sqlalchemy.sql import func
from app.core.database import Base


class Archive(Base):
    __tablename__ = "archives"

    id = Column(Integer, primary_key=True, index=True)
    data = Column(JSON, nullable=False)
    source_collection = Column(String(64), nullable=False, index=True)
    original_id = Column(Integer, nullable=True, index=True)
    reason = Column(Text, nullable=True)
    archived_by = Column(Integer, nullable=True)
    date_archived = Column(DateTime(timezone=True), server_default=func.now())
