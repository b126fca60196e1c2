from sqlalchemy import Column, String, Text, DateTime, Integer
from src.models.base import BaseModel


class Article(BaseModel):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    summary = Column(Text, nullable=False, default="")
    link = Column(String(1024), nullable=False, unique=True)
    publisher = Column(String(255), nullable=False)
    published_at = Column(DateTime, nullable=False, index=True)
    category = Column(String(64), nullable=False, default="economy")

    @property
    def text(self) -> str:
        """Title and summary joined, the input for classification and scoring."""
        return f"{self.title} {self.summary or ''}"
