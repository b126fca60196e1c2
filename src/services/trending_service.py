import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models.article import Article
from src.models.base import utc_now
from src.models.issue import Issue, IssueArticle
from src.services.card_service import CardService

WEIGHT_ARTICLE_COUNT = 1.5
WEIGHT_PUBLISHER = 2.0
WEIGHT_RECENCY = 5.0
RECENCY_DECAY_HOURS = 6.0
FETCH_WINDOW_HOURS = 48


@dataclass
class TrendingIssue:
    issue_id: int
    issue_title: str
    issue_group: str
    headline: Optional[str]
    signal_summary: Optional[str]
    article_count: int
    publisher_count: int
    last_published_at: datetime
    score: float
    conclusion: Optional[str] = None


def trending_score(article_count: int, publisher_count: int, last_published_at: datetime, now: datetime) -> float:
    """
    article_count * 1.5 + (publishers - 1) * 2.0 + exp(-hours_since_last / 6) * 5.0

    Recency dominates: an article published just now adds 5.0, six hours ago ~1.8.
    """
    publisher_bonus = max(publisher_count - 1, 0)
    hours_since_last = (now - last_published_at).total_seconds() / 3600
    recency = math.exp(-hours_since_last / RECENCY_DECAY_HOURS)
    return (
        article_count * WEIGHT_ARTICLE_COUNT
        + publisher_bonus * WEIGHT_PUBLISHER
        + recency * WEIGHT_RECENCY
    )


class TrendingService:
    def __init__(self, db: Session):
        self.db = db
        self.card_service = CardService(db)

    def get_trending_issues(self, limit: int = 10, now: Optional[datetime] = None) -> List[TrendingIssue]:
        now = now or utc_now()
        since = now - timedelta(hours=FETCH_WINDOW_HOURS)

        last_at = func.max(IssueArticle.published_at)
        stmt = (
            select(
                Issue,
                func.count(IssueArticle.article_link),
                func.count(func.distinct(Article.publisher)),
                last_at,
            )
            .join(IssueArticle, IssueArticle.issue_id == Issue.id)
            .outerjoin(Article, Article.link == IssueArticle.article_link)
            .where(IssueArticle.published_at >= since)
            .group_by(Issue.id)
            .order_by(last_at.desc())
            .limit(limit * 5)
        )

        scored = []
        for issue, article_count, publisher_count, last_published_at in self.db.execute(stmt).all():
            scored.append(TrendingIssue(
                issue_id=issue.id,
                issue_title=issue.title,
                issue_group=issue.group_name,
                headline=issue.headline,
                signal_summary=issue.signal_summary,
                article_count=article_count,
                publisher_count=publisher_count,
                last_published_at=last_published_at,
                score=trending_score(article_count, publisher_count, last_published_at, now),
                conclusion=self.card_service.find_conclusion(issue.id),
            ))

        scored.sort(key=lambda t: t.score, reverse=True)
        return scored[:limit]
