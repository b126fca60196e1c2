import enum

from sqlalchemy import Column, String, Text, DateTime, Integer

from src.models.base import Base


class PipelineStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class PipelineStage(str, enum.Enum):
    RSS_COLLECT = "RSS_COLLECT"
    ISSUE_CLUSTER = "ISSUE_CLUSTER"
    CARD_GENERATE = "CARD_GENERATE"


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at = Column(DateTime, nullable=False, index=True)
    finished_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    rss_saved_count = Column(Integer, nullable=False, default=0)
    issues_created_count = Column(Integer, nullable=False, default=0)
    issues_updated_count = Column(Integer, nullable=False, default=0)
    cards_created_count = Column(Integer, nullable=False, default=0)
    cards_failed_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default=PipelineStatus.RUNNING.value)
    error_stage = Column(String(32), nullable=True)
    error_message = Column(Text, nullable=True)
