from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.core.timeutils import utcnow

class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    # A user sits on at most one support line; the pointer lives here, not on the line.
    support_line_id = Column(Integer, ForeignKey("support_lines.id"), nullable=True, index=True)
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    role = relationship("Role", lazy="joined")
    support_line = relationship("SupportLine", back_populates="operators")

    @property
    def role_name(self):
        return self.role.name if self.role else None
