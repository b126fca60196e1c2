# src/services/issue_service.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.base import utc_now
from src.models.issue import Issue, IssueArticle, IssueStatus

logger = logging.getLogger(__name__)

MAX_KEYWORDS_PER_ISSUE = 8
MIN_CARD_PUBLISHERS = 2
MIN_CARD_ARTICLES = 2


class IssueService:
    """
    Persistence for issues and their article mappings.

    `upsert` and `add_articles_to_issue` only flush; the caller owns the
    transaction so that one cluster is committed (or rolled back) as a unit.
    """

    def __init__(self, db: Session):
        self.db = db

    # ======== READ ========
    def find_by_id(self, issue_id: int) -> Optional[Issue]:
        return self.db.get(Issue, issue_id)

    def find_by_fingerprint(self, fingerprint: str) -> Optional[Issue]:
        stmt = select(Issue).where(Issue.fingerprint == fingerprint)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_article_links_by_issue_id(self, issue_id: int) -> List[str]:
        stmt = select(IssueArticle.article_link).where(IssueArticle.issue_id == issue_id)
        return list(self.db.execute(stmt).scalars().all())

    def count_articles(self, issue_id: int) -> int:
        stmt = select(func.count()).select_from(IssueArticle).where(IssueArticle.issue_id == issue_id)
        return self.db.execute(stmt).scalar_one()

    def find_all(self, limit: int = 100) -> List[Issue]:
        stmt = select(Issue).order_by(Issue.last_published_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def find_open_issues(self, limit: int = 100) -> List[Issue]:
        stmt = (
            select(Issue)
            .where(Issue.status == IssueStatus.OPEN.value)
            .order_by(Issue.last_published_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_card_generation_targets(self, hours: int = 48, limit: int = 50, now: Optional[datetime] = None) -> List[Issue]:
        since = (now or utc_now()) - timedelta(hours=hours)
        stmt = (
            select(Issue)
            .where(Issue.last_published_at >= since)
            .where(Issue.publisher_count >= MIN_CARD_PUBLISHERS)
            .where(Issue.article_count >= MIN_CARD_ARTICLES)
            .order_by(Issue.last_published_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_paginated(
        self,
        page: int = 1,
        per_page: int = 10,
        group: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = self.db.query(Issue)
        if group:
            query = query.filter(Issue.group_name == group)
        if status:
            query = query.filter(Issue.status == status)

        total = query.count()
        items = (
            query.order_by(Issue.last_published_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return {
            "page": page,
            "per_page": per_page,
            "total": total,
            "items": items,
            "has_next": (page * per_page) < total,
        }

    # ======== WRITE ========
    def upsert(self, candidate: Issue) -> Tuple[Issue, bool]:
        """
        Insert `candidate` or fold it into the issue with the same fingerprint.
        Returns (issue, is_new). On update the fingerprint, group, title and
        first_published_at of the stored row are left untouched.
        """
        existing = self.find_by_fingerprint(candidate.fingerprint)
        if existing is None:
            candidate.status = IssueStatus.OPEN.value
            self.db.add(candidate)
            self.db.flush()
            return candidate, True

        existing.keywords = merge_keywords(candidate.keywords, existing.keywords)
        existing.last_published_at = max(existing.last_published_at, candidate.last_published_at)
        existing.article_count = max(existing.article_count, candidate.article_count)
        existing.publisher_count = max(existing.publisher_count, candidate.publisher_count)
        self.db.flush()
        return existing, False

    def add_articles_to_issue(self, issue_id: int, articles: Iterable) -> int:
        """
        Map articles to the issue, ignoring mappings that already exist.
        Each insert runs in its own savepoint; a failed mapping is logged and
        skipped without undoing the issue row or the other mappings.
        """
        added = 0
        for article in articles:
            stmt = self._insert_ignore(
                issue_id=issue_id,
                article_link=article.link,
                published_at=article.published_at,
            )
            try:
                with self.db.begin_nested():
                    result = self.db.execute(stmt)
            except SQLAlchemyError as e:
                logger.warning(f"Failed to map article to issue {issue_id}: {article.link} ({e})")
                continue
            if result.rowcount and result.rowcount > 0:
                added += 1
            else:
                logger.debug(f"Skipped duplicate article mapping: issue_id={issue_id}, link={article.link}")
        return added

    def sync_article_count(self, issue: Issue) -> Issue:
        """Raise article_count to the number of mapped articles (union across runs)."""
        mapped = self.count_articles(issue.id)
        if mapped > issue.article_count:
            issue.article_count = mapped
            self.db.flush()
        return issue

    def update_headline(self, issue_id: int, headline: Optional[str], signal_summary: Optional[str]) -> None:
        issue = self.find_by_id(issue_id)
        if issue is None:
            return
        if headline is not None:
            issue.headline = headline[:255]
        if signal_summary is not None:
            issue.signal_summary = signal_summary[:512]
        self.db.commit()

    def _insert_ignore(self, **values):
        table = IssueArticle.__table__
        dialect = self.db.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert(table).values(**values).on_conflict_do_nothing(
                index_elements=["issue_id", "article_link"]
            )
        if dialect == "postgresql":
            return postgresql.insert(table).values(**values).on_conflict_do_nothing(
                index_elements=["issue_id", "article_link"]
            )
        # MySQL / MariaDB
        return insert(table).values(**values).prefix_with("IGNORE")


def merge_keywords(new: List[str], old: List[str], limit: int = MAX_KEYWORDS_PER_ISSUE) -> List[str]:
    """New keyword profile first, previously stored keywords after it, capped at `limit`."""
    return list(dict.fromkeys(list(new) + list(old)))[:limit]
