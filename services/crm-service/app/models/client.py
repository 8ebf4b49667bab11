from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from app.core.db import Base
from app.core.timeutils import utcnow

class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("channel", "external_id", name="uq_clients_channel_external_id"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    channel = Column(String(50), nullable=True)
    external_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
