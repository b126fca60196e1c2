# src/services/source_service.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.models.source import Source

logger = logging.getLogger(__name__)


class SourceService:
    def __init__(self, db: Session):
        self.db = db

    # ======== READ ========
    def get(self, source_id: int) -> Optional[Source]:
        return self.db.get(Source, source_id)

    def get_all(self) -> List[Source]:
        return list(self.db.execute(select(Source).order_by(Source.id)).scalars().all())

    def get_active(self) -> List[Source]:
        stmt = select(Source).where(Source.is_active.is_(True)).order_by(Source.id)
        return list(self.db.execute(stmt).scalars().all())

    # ======== WRITE ========
    def save(self, source: Source) -> Source:
        try:
            self.db.add(source)
            self.db.commit()
            return source
        except IntegrityError:
            self.db.rollback()
            raise ValueError(f"Source with URL {source.url} already exists.")

    def sync(self, feeds: Iterable[Tuple[str, str]]) -> int:
        """Add configured (publisher, url) feeds that are not stored yet."""
        known = {s.url for s in self.get_all()}
        added = 0
        for publisher, url in feeds:
            if url in known:
                continue
            self.save(Source(name=publisher, url=url, description="configured via RSS_FEEDS"))
            known.add(url)
            added += 1
        if added:
            logger.info(f"Registered {added} RSS feeds from configuration")
        return added
