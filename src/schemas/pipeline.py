# src/schemas/pipeline.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class LastRunOut(BaseModel):
    id: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    rss_saved_count: int
    issues_created_count: int
    issues_updated_count: int
    cards_created_count: int
    cards_failed_count: int
    status: str
    error_stage: Optional[str] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PipelineHealthOut(BaseModel):
    status: str
    pipeline_enabled: bool
    last_run: Optional[LastRunOut] = None
