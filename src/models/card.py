import enum

from sqlalchemy import Column, String, Text, Integer, Boolean

from src.models.base import BaseModel


class CardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"  # retried on the next run


class Card(BaseModel):
    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_id = Column(Integer, nullable=False, unique=True)
    issue_fingerprint = Column(String(128), nullable=False, index=True)
    model = Column(String(64), nullable=False)
    content_json = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=CardStatus.ACTIVE.value)


class CardGenerationLog(BaseModel):
    __tablename__ = "card_generation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_id = Column(Integer, nullable=False, index=True)
    issue_fingerprint = Column(String(128), nullable=False)
    attempt = Column(Integer, nullable=False, default=1)
    success = Column(Boolean, nullable=False)
    http_status = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    latency_ms = Column(Integer, nullable=True)
