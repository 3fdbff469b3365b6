from sqlalchemy import Column, String, Text, DateTime
from medportal.database import Base
from medportal.models._common import new_id, utcnow


class AuditLog(Base):
    """Audit trail record. Declared for the schema; nothing writes it yet."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), index=True)
    action = Column(String(100), nullable=False)
    table_name = Column(String(100))
    record_id = Column(String(36))
    details = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
