import enum
from typing import List

from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship

from src.models.base import Base, BaseModel
from src.models.category import CategoryGroup


class IssueStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Issue(BaseModel):
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_name = Column(String(32), nullable=False)
    title = Column(String(512), nullable=False)
    _keywords = Column("keywords", Text, nullable=False, default="")  # comma separated
    first_published_at = Column(DateTime, nullable=False)
    last_published_at = Column(DateTime, nullable=False, index=True)
    article_count = Column(Integer, nullable=False, default=0)
    publisher_count = Column(Integer, nullable=False, default=0)
    status = Column(String(32), nullable=False, default=IssueStatus.OPEN.value)
    fingerprint = Column(String(128), nullable=False, unique=True)

    # filled in later by card generation
    headline = Column(String(255), nullable=True)
    signal_summary = Column(String(512), nullable=True)

    articles = relationship("IssueArticle", back_populates="issue")
    lifecycle = relationship("IssueLifecycle", uselist=False, back_populates="issue")

    @property
    def group(self) -> CategoryGroup:
        return CategoryGroup(self.group_name)

    @group.setter
    def group(self, value: CategoryGroup):
        self.group_name = value.value

    @property
    def group_display_name(self) -> str:
        return self.group.display_name

    @property
    def keywords(self) -> List[str]:
        return [k for k in (self._keywords or "").split(",") if k.strip()]

    @keywords.setter
    def keywords(self, value: List[str]):
        self._keywords = ",".join(value)


class IssueArticle(Base):
    __tablename__ = "issue_articles"

    issue_id = Column(Integer, ForeignKey("issues.id"), primary_key=True)
    article_link = Column(String(500), primary_key=True)
    published_at = Column(DateTime, nullable=False, index=True)

    issue = relationship("Issue", back_populates="articles")
