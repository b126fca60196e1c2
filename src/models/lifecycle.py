import enum
from typing import NamedTuple

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import relationship

from src.models.base import Base, utc_now


class IssueLifecycleStage(str, enum.Enum):
    EMERGING = "EMERGING"
    SPREADING = "SPREADING"
    PEAK = "PEAK"
    DECLINING = "DECLINING"
    DORMANT = "DORMANT"

    @property
    def emoji(self) -> str:
        return STAGE_META[self].emoji

    @property
    def label(self) -> str:
        return STAGE_META[self].label

    @property
    def description(self) -> str:
        return STAGE_META[self].description


class StageMeta(NamedTuple):
    emoji: str
    label: str
    description: str


STAGE_META = {
    IssueLifecycleStage.EMERGING: StageMeta("🔥", "발생", "새롭게 떠오르는 이슈"),
    IssueLifecycleStage.SPREADING: StageMeta("📈", "확산", "관심이 빠르게 증가 중"),
    IssueLifecycleStage.PEAK: StageMeta("⚠️", "정점", "관심이 최고조에 달함"),
    IssueLifecycleStage.DECLINING: StageMeta("📉", "소강", "관심이 줄어드는 중"),
    IssueLifecycleStage.DORMANT: StageMeta("💤", "종료", "이슈가 마무리됨"),
}


class IssueLifecycle(Base):
    __tablename__ = "issue_lifecycles"

    issue_id = Column(Integer, ForeignKey("issues.id"), primary_key=True)
    stage = Column(String(20), nullable=False)
    change_percent = Column(Integer, nullable=False, default=0)  # vs. peak, always <= 0
    peak_article_count = Column(Integer, nullable=False, default=0)
    current_article_count = Column(Integer, nullable=False, default=0)
    peak_date = Column(DateTime, nullable=True)
    stage_changed_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    issue = relationship("Issue", back_populates="lifecycle")

    @property
    def stage_enum(self) -> IssueLifecycleStage:
        return IssueLifecycleStage(self.stage)

    @property
    def emoji(self) -> str:
        return self.stage_enum.emoji

    @property
    def label(self) -> str:
        return self.stage_enum.label

    @property
    def description(self) -> str:
        return self.stage_enum.description


class IssueArticleHistory(Base):
    """24h rolling article count of an issue, one row per lifecycle evaluation."""

    __tablename__ = "issue_article_histories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_id = Column(Integer, nullable=False, index=True)
    article_count = Column(Integer, nullable=False)
    recorded_at = Column(DateTime, nullable=False, index=True)
