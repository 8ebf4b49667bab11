from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.core.timeutils import utcnow

DEFAULT_POLICY = {"auto_assign": True, "round_robin": True, "priority": 0}

class SupportLine(Base):
    __tablename__ = "support_lines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    max_operators = Column(Integer, nullable=False, default=0)

    # routing policy stored as JSON: auto_assign, round_robin, priority
    policy = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_POLICY))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    operators = relationship("User", back_populates="support_line", order_by="User.id")

    def policy_value(self, key: str):
        return (self.policy or {}).get(key, DEFAULT_POLICY[key])
