import enum
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, Enum
from sqlalchemy.sql import func
from app.core.database import Base


class LogSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(
        Enum(LogSeverity, values_callable=lambda levels: [lv.value for lv in levels]),
        default=LogSeverity.INFO,
        nullable=False,
    )
    meta = Column(JSON, default=dict)
    user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
