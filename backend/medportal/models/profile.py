from sqlalchemy import Column, String, DateTime
from medportal.database import Base
from medportal.models._common import new_id, utcnow


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(200), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False)  # medportal.roles.Role value
    avatar_url = Column(String(1000))
    password_hash = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
