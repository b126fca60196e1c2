import time
from datetime import datetime

import pytest
from sqlalchemy import select

from src.models.article import Article
from src.models.source import Source
from src.parsers.rss_parser import RSSParser
from src.services.article_service import ArticleService
from src.services.collector_service import CollectorService
from tests.conftest import NOW

LONG_SUMMARY = "시장 참가자들은 이번 결정을 대체로 예상했다는 반응이다"

FEED = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
  <title>경제 뉴스</title>
  <link>https://news.example.com</link>
  <description>test feed</description>
  <item>
    <title>한은 기준금리 동결 결정</title>
    <link>https://news.example.com/1</link>
    <description>&lt;p&gt;한국은행이 기준금리를 연 3.5%로 &amp;quot;동결&amp;quot;했다고 밝혔다&lt;/p&gt;</description>
    <pubDate>Mon, 10 Mar 2025 20:00:00 +0900</pubDate>
  </item>
  <item>
    <title>금리</title>
    <link>https://news.example.com/2</link>
    <description>{LONG_SUMMARY}</description>
    <pubDate>Mon, 10 Mar 2025 20:00:00 +0900</pubDate>
  </item>
  <item>
    <title>달러 환율 강세 이어져</title>
    <link>https://news.example.com/3</link>
    <description>짧은 요약</description>
    <pubDate>Mon, 10 Mar 2025 20:00:00 +0900</pubDate>
  </item>
  <item>
    <title>코스피 급락 마감 소식</title>
    <link>https://news.example.com/4</link>
    <description>{LONG_SUMMARY}</description>
    <pubDate>Thu, 06 Mar 2025 20:00:00 +0900</pubDate>
  </item>
  <item>
    <title>아파트 분양 시장 동향</title>
    <link>https://news.example.com/5</link>
    <description>{LONG_SUMMARY}</description>
  </item>
  <item>
    <title>수출 증가세 지속 전망</title>
    <description>{LONG_SUMMARY}</description>
    <pubDate>Mon, 10 Mar 2025 20:00:00 +0900</pubDate>
  </item>
  <item>
    <title>물가 상승률 둔화 발표</title>
    <link>https://news.example.com/7</link>
    <description>{LONG_SUMMARY}</description>
    <pubDate>Mon, 10 Mar 2025 19:30:00 +0900</pubDate>
  </item>
</channel>
</rss>
""".encode("utf-8")


@pytest.fixture
def source():
    return Source(name="연합뉴스", url="https://news.example.com/rss")


@pytest.fixture
def parser(db, source):
    return RSSParser(source, ArticleService(db), cutoff_hours=48)


class TestParseFeed:
    def test_filters_entries(self, parser):
        articles = parser.parse_feed(FEED, now=NOW)
        assert [a.link for a in articles] == ["https://news.example.com/1", "https://news.example.com/7"]

    def test_maps_fields(self, parser):
        article = parser.parse_feed(FEED, now=NOW)[0]
        assert article.title == "한은 기준금리 동결 결정"
        assert article.summary == '한국은행이 기준금리를 연 3.5%로 "동결"했다고 밝혔다'
        assert article.publisher == "연합뉴스"
        assert article.published_at == datetime(2025, 3, 10, 11, 0, 0)

    def test_cutoff(self, db, source):
        parser = RSSParser(source, ArticleService(db), cutoff_hours=1)
        articles = parser.parse_feed(FEED, now=NOW)
        assert [a.link for a in articles] == ["https://news.example.com/1"]


class TestHelpers:
    def test_clean_text(self):
        assert RSSParser.clean_text("<p>A &amp; B</p>\n  C") == "A & B C"
        assert RSSParser.clean_text(None) == ""

    def test_date_from_parsed_struct(self):
        entry = {"published_parsed": time.strptime("2025-03-10 11:00:00", "%Y-%m-%d %H:%M:%S")}
        assert RSSParser._to_naive_utc(entry) == datetime(2025, 3, 10, 11, 0, 0)

    def test_date_fallback_to_dateutil(self):
        entry = {"published": "2025-03-10 19:30:15.123+09:00"}
        assert RSSParser._to_naive_utc(entry) == datetime(2025, 3, 10, 10, 30, 15)

    def test_unparseable_date(self):
        assert RSSParser._to_naive_utc({"published": "not a date"}) is None
        assert RSSParser._to_naive_utc({}) is None


class TestParse:
    def test_saves_new_articles_once(self, db, parser, monkeypatch):
        monkeypatch.setattr("src.parsers.rss_parser.utc_now", lambda: NOW)
        monkeypatch.setattr(parser, "fetch_html", lambda *a, **k: FEED)

        assert parser.parse() == 2
        assert parser.parse() == 0
        assert len(db.execute(select(Article)).scalars().all()) == 2


class TestCollector:
    def test_failing_feed_does_not_stop_others(self, db, monkeypatch):
        monkeypatch.setattr("src.parsers.rss_parser.utc_now", lambda: NOW)

        def fake_fetch(self, url, as_bytes=False, **kwargs):
            if "broken" in url:
                raise RuntimeError(f"Failed to fetch {url}")
            return FEED

        monkeypatch.setattr(RSSParser, "fetch_html", fake_fetch)
        collector = CollectorService(db, feeds=[
            ("깨진피드", "https://broken.example.com/rss?key=secret"),
            ("연합뉴스", "https://news.example.com/rss"),
        ])

        assert collector.collect_all() == 2
        assert len(collector.source_service.get_all()) == 2

    def test_sync_is_idempotent(self, db):
        collector = CollectorService(db, feeds=[("연합뉴스", "https://news.example.com/rss")])
        assert collector.source_service.sync(collector.feeds) == 1
        assert collector.source_service.sync(collector.feeds) == 0
