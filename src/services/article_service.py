# src/services/article_service.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.article import Article
from src.models.base import utc_now

logger = logging.getLogger(__name__)


class ArticleService:
    def __init__(self, db: Session):
        self.db = db

    # ======== READ ========
    def get(self, article_id: int) -> Optional[Article]:
        return self.db.get(Article, article_id)

    def get_by_url(self, url: str) -> Optional[Article]:
        stmt = select(Article).where(Article.link == url)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_recent_articles(self, hours: int = 48, limit: int = 1000, now: Optional[datetime] = None) -> List[Article]:
        since = (now or utc_now()) - timedelta(hours=hours)
        stmt = (
            select(Article)
            .where(Article.published_at >= since)
            .order_by(Article.published_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_links_for_card(self, links: Sequence[str], limit: int = 8) -> List[Article]:
        if not links:
            return []
        stmt = (
            select(Article)
            .where(Article.link.in_(list(links)))
            .order_by(Article.published_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    # ======== WRITE ========
    def save(self, article: Article) -> Article:
        try:
            self.db.add(article)
            self.db.commit()
            return article
        except IntegrityError:
            self.db.rollback()
            raise ValueError(f"Article with link {article.link} already exists.")

    def save_all(self, articles: Iterable[Article]) -> int:
        """Insert articles whose link is not stored yet. Returns the number inserted."""
        by_link = {}
        for a in articles:
            by_link.setdefault(a.link, a)
        unique = list(by_link.values())
        if not unique:
            return 0

        links = [a.link for a in unique]
        existing = set(self.db.execute(select(Article.link).where(Article.link.in_(links))).scalars().all())
        new_articles = [a for a in unique if a.link not in existing]
        if not new_articles:
            return 0

        try:
            self.db.add_all(new_articles)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Skipped inserting some articles due to constraint violation or other issue", exc_info=True)
            return 0

        logger.info(f"Inserted {len(new_articles)} new articles")
        return len(new_articles)
