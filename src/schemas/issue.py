# src/schemas/issue.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Any, Dict, Optional, List


class IssueLifecycleOut(BaseModel):
    stage: str
    emoji: str
    label: str
    description: str
    change_percent: int
    peak_article_count: int
    current_article_count: int
    peak_date: Optional[datetime] = None
    stage_changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IssueOut(BaseModel):
    id: int
    group_name: str
    group_display_name: str
    title: str
    keywords: List[str] = []
    first_published_at: datetime
    last_published_at: datetime
    article_count: int
    publisher_count: int
    status: str
    fingerprint: str
    headline: Optional[str] = None
    signal_summary: Optional[str] = None

    lifecycle: Optional[IssueLifecycleOut] = None

    model_config = ConfigDict(from_attributes=True)


class PaginatedIssues(BaseModel):
    page: int
    per_page: int
    total: int
    items: List[IssueOut]
    has_next: bool


class TrendingIssueOut(BaseModel):
    issue_id: int
    issue_title: str
    issue_group: str
    headline: Optional[str] = None
    signal_summary: Optional[str] = None
    article_count: int
    publisher_count: int
    last_published_at: datetime
    score: float
    conclusion: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CardOut(BaseModel):
    issue_id: int
    issue_fingerprint: str
    model: str
    status: str
    content: Dict[str, Any]
    updated_at: datetime
