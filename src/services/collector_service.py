import logging
from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from config import Config
from src.parsers.rss_parser import RSSParser
from src.services.article_service import ArticleService
from src.services.source_service import SourceService

logger = logging.getLogger(__name__)


class CollectorService:
    """Pulls every active RSS source into the articles table."""

    def __init__(self, db: Session, feeds: Optional[Iterable[Tuple[str, str]]] = None):
        self.db = db
        self.feeds = list(Config.RSS_FEEDS if feeds is None else feeds)
        self.source_service = SourceService(db)
        self.article_service = ArticleService(db)

    def collect_all(self) -> int:
        self.source_service.sync(self.feeds)

        total = 0
        for source in self.source_service.get_active():
            parser = RSSParser(source, self.article_service)
            try:
                total += parser.parse()
            except Exception as e:
                # the full URL may carry API keys, log the host only
                logger.warning(f"RSS feed failed ({source.name}, host={urlparse(source.url).hostname}): {type(e).__name__}")

        logger.info(f"RSS collection finished: {total} new articles")
        return total
