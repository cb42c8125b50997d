from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func
import uuid

from chatcore.db.base import Base


class User(Base):
    """Chatbot owner. Only the subscription tier and usage counters matter to the engine."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    subscription_tier = Column(String(32), nullable=False, default="free")  # free | pro | enterprise
    monthly_messages = Column(Integer, nullable=False, default=0)
    messages = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
