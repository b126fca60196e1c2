"""Shared fixtures: an in-memory SQLite database and article factories."""

from __future__ import annotations

from datetime import datetime, timedelta
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.models import article, card, issue, lifecycle, pipeline_run, source  # noqa: F401
from src.models.article import Article
from src.models.base import Base

# fixed clock for every time-dependent test
NOW = datetime(2025, 3, 10, 12, 0, 0)

# summary text with no keyword of any group
NEUTRAL_SUMMARY = "자세한 내용은 본문 기사에서 확인할 수 있다"

_link_seq = count(1)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


def make_article(
    title: str,
    publisher: str,
    published_at: datetime,
    summary: str = NEUTRAL_SUMMARY,
    link: str | None = None,
) -> Article:
    return Article(
        title=title,
        summary=summary,
        link=link or f"https://news.example.com/a/{next(_link_seq)}",
        publisher=publisher,
        published_at=published_at,
    )


@pytest.fixture
def article_factory(db):
    """Create and commit an article."""

    def _create(title, publisher, published_at, summary=NEUTRAL_SUMMARY, link=None) -> Article:
        a = make_article(title, publisher, published_at, summary=summary, link=link)
        db.add(a)
        db.commit()
        return a

    return _create


@pytest.fixture
def now() -> datetime:
    return NOW


def hours_ago(hours: float) -> datetime:
    return NOW - timedelta(hours=hours)
