from sqlalchemy import Column, String, Integer, Boolean
from src.models.base import BaseModel


class Source(BaseModel):
    """An RSS feed. `name` is stored as the publisher of every article it yields."""

    __tablename__ = "sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    url = Column(String(512), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
