from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.folder import folder_documents


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    original_filename = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    format = Column(String(32), nullable=True)
    tags = Column(JSON, default=list, nullable=False)

    # Name of the owning folder, kept in step with folder_documents
    folder = Column(String(255), index=True, nullable=False, default="others")

    public_id = Column(String(512), nullable=True)
    secure_url = Column(String(1024), nullable=True)
    url = Column(String(1024), nullable=True)
    resource_type = Column(String(32), nullable=True)
    bytes = Column(Integer, nullable=True)

    copied_from = Column(Integer, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    folders = relationship(
        "Folder", secondary=folder_documents, back_populates="documents"
    )

    def as_asset(self):
        return {"public_id": self.public_id, "resource_type": self.resource_type}
