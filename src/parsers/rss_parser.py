import calendar
import html
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as dateparse

from config import Config
from src.models.article import Article
from src.models.base import utc_now
from src.models.source import Source
from src.parsers.base_parser import BaseParser
from src.services.article_service import ArticleService

logger = logging.getLogger(__name__)

MIN_TITLE_LEN = 8
MIN_SUMMARY_LEN = 20


class RSSParser(BaseParser):
    UA = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    def __init__(self, source: Source, service: ArticleService, cutoff_hours: Optional[int] = None):
        super().__init__(source, service)
        self.cutoff_hours = cutoff_hours if cutoff_hours is not None else Config.RSS_CUTOFF_HOURS

    def parse(self) -> int:
        raw = self.fetch_html(
            self.source.url,
            as_bytes=True,
            extra_headers={"Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8"},
        )
        articles = self.parse_feed(raw)
        saved = self.service.save_all(articles)
        logger.info(f"[{self.source.name}] {len(articles)} entries accepted, {saved} new articles saved")
        return saved

    def parse_feed(self, raw, now: Optional[datetime] = None) -> List[Article]:
        d = feedparser.parse(raw)
        if getattr(d, "bozo", 0):
            logger.warning(f"[{self.source.name}] feedparser bozo: {getattr(d, 'bozo_exception', None)}")

        cutoff = (now or utc_now()) - timedelta(hours=self.cutoff_hours)
        articles = []
        for e in d.entries:
            article = self._entry_to_article(e, cutoff)
            if article is not None:
                articles.append(article)
        return articles

    def _entry_to_article(self, e, cutoff: datetime) -> Optional[Article]:
        title = self.clean_text(e.get("title"))
        link = (e.get("link") or "").strip()
        if not link or len(title) < MIN_TITLE_LEN:
            return None

        summary = self.clean_text(e.get("summary") or e.get("description"))
        if len(summary) < MIN_SUMMARY_LEN:
            return None

        published_at = self._to_naive_utc(e)
        if published_at is None or published_at < cutoff:
            return None

        return Article(
            title=title,
            summary=summary,
            link=link,
            publisher=self.source.name,
            published_at=published_at,
        )

    @staticmethod
    def clean_text(value: Optional[str]) -> str:
        """Unescape HTML entities, strip tags and collapse whitespace."""
        if not value:
            return ""
        text = html.unescape(value)
        if "<" in text:
            text = BeautifulSoup(text, "lxml").get_text(" ")
        return " ".join(text.split())

    @staticmethod
    def _to_naive_utc(e) -> Optional[datetime]:
        """
        published_parsed -> updated_parsed -> published -> updated,
        returned as naive UTC without microseconds.
        """
        tm = e.get("published_parsed") or e.get("updated_parsed")
        if tm:
            dt = datetime.fromtimestamp(calendar.timegm(tm), tz=timezone.utc)
        else:
            txt = e.get("published") or e.get("updated")
            if not txt:
                return None
            try:
                dt = dateparse.parse(txt)
            except (ValueError, OverflowError):
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).replace(tzinfo=None, microsecond=0)
