from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.models.category import CategoryGroup
from src.models.issue import Issue, IssueArticle
from src.services.clustering_service import (
    ArticleCluster,
    IssueClusteringService,
)
from tests.conftest import NOW, hours_ago, make_article


def classified(title, publisher, published_at, summary=None):
    kwargs = {} if summary is None else {"summary": summary}
    article = make_article(title, publisher, published_at, **kwargs)
    return IssueClusteringService.classify_articles([article])[0]


@pytest.fixture
def service(db):
    return IssueClusteringService(db)


class TestSimilarity:
    def test_two_common_keywords_within_window(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("한은 기준금리 동결", "Y", NOW + timedelta(hours=1))
        assert IssueClusteringService.is_similar(a, b)

    def test_one_common_keyword_is_not_enough(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("금리 인상 우려", "Y", NOW)
        assert not IssueClusteringService.is_similar(a, b)

    def test_exactly_48_hours_apart_is_similar(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("한은 기준금리 동결", "Y", NOW + timedelta(hours=48))
        assert IssueClusteringService.is_similar(a, b)
        assert IssueClusteringService.is_similar(b, a)

    def test_beyond_48_hours_is_not_similar(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("한은 기준금리 동결", "Y", NOW + timedelta(hours=48, seconds=1))
        assert not IssueClusteringService.is_similar(a, b)

    def test_different_groups_are_not_similar(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("달러 환율 강세", "Y", NOW)
        assert not IssueClusteringService.is_similar(a, b)


class TestClusterWithinGroup:
    def test_newest_article_seeds_and_absorbs(self):
        old = classified("금리 동결 발표", "X", hours_ago(3))
        new = classified("한은 기준금리 동결", "Y", hours_ago(1))
        other = classified("연준 파월 발언", "Z", hours_ago(2))

        clusters = IssueClusteringService.cluster_within_group([old, new, other])

        assert len(clusters) == 2
        assert [c.article.title for c in clusters[0].articles] == ["한은 기준금리 동결", "금리 동결 발표"]
        assert [c.article.title for c in clusters[1].articles] == ["연준 파월 발언"]

    def test_every_article_lands_in_exactly_one_cluster(self):
        items = [
            classified("금리 동결 발표", "X", hours_ago(1)),
            classified("한은 기준금리 동결", "Y", hours_ago(2)),
            classified("기준금리 동결 유지", "Z", hours_ago(3)),
            classified("연준 파월 발언", "W", hours_ago(4)),
        ]
        clusters = IssueClusteringService.cluster_within_group(items)
        links = [c.article.link for cluster in clusters for c in cluster.articles]
        assert sorted(links) == sorted(i.article.link for i in items)


class TestKeywordsAndNaming:
    def test_merged_keywords_by_frequency(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("한은 기준금리 동결", "Y", NOW + timedelta(hours=1))
        cluster = ArticleCluster(CategoryGroup.RATE, [b, a])
        assert cluster.merged_keywords == ["금리", "동결", "기준금리", "한은"]
        assert cluster.publisher_count == 2

    def test_fallback_to_all_group_keywords(self):
        a = classified("달러 강세", "X", NOW, summary="코스피 영향")
        b = classified("달러 강세 지속", "Y", NOW, summary="코스피 영향")
        cluster = ArticleCluster(CategoryGroup.FX, [a, b])
        assert IssueClusteringService.resolve_keywords(cluster) == ["달러", "강세", "코스피"]

    def test_not_enough_keywords(self):
        a = classified("달러 강세", "X", NOW)
        b = classified("달러 강세 지속", "Y", NOW)
        cluster = ArticleCluster(CategoryGroup.FX, [a, b])
        assert IssueClusteringService.resolve_keywords(cluster) is None

    def test_fingerprint_sorts_top_three(self):
        fp = IssueClusteringService.generate_fingerprint(CategoryGroup.RATE, ["금리", "동결", "기준금리", "한은"])
        assert fp == "RATE:금리,기준금리,동결"

    def test_fingerprint_ignores_order_of_top_three(self):
        a = IssueClusteringService.generate_fingerprint(CategoryGroup.RATE, ["동결", "금리", "기준금리"])
        b = IssueClusteringService.generate_fingerprint(CategoryGroup.RATE, ["기준금리", "동결", "금리", "한은"])
        assert a == b

    def test_long_fingerprint_is_hashed(self):
        keywords = ["a" * 30, "b" * 30, "c" * 30]
        fp = IssueClusteringService.generate_fingerprint(CategoryGroup.MACRO, keywords)
        assert fp.startswith("MACRO:")
        assert len(fp) == len("MACRO:") + 32
        assert fp == IssueClusteringService.generate_fingerprint(CategoryGroup.MACRO, list(reversed(keywords)))

    def test_title(self):
        title = IssueClusteringService.generate_title(CategoryGroup.RATE, ["금리", "동결", "기준금리"])
        assert title == "금리 관련 이슈: 금리/동결"


class TestMinimumRequirements:
    def test_single_publisher_rejected(self):
        a = classified("금리 동결 발표", "X", NOW)
        b = classified("한은 기준금리 동결", "X", NOW)
        assert not IssueClusteringService.meets_minimum_requirements(ArticleCluster(CategoryGroup.RATE, [a, b]))

    def test_single_article_rejected(self):
        a = classified("금리 동결 발표", "X", NOW)
        assert not IssueClusteringService.meets_minimum_requirements(ArticleCluster(CategoryGroup.RATE, [a]))


class TestClusterRecentArticles:
    def test_creates_one_issue(self, db, service, article_factory):
        article_factory("금리 동결 발표", "X", hours_ago(3))
        article_factory("한은 기준금리 동결", "Y", hours_ago(2))

        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.updated, result.skipped) == (1, 0, 0)
        issue = db.execute(select(Issue)).scalar_one()
        assert issue.group == CategoryGroup.RATE
        assert issue.keywords == ["금리", "동결", "기준금리", "한은"]
        assert issue.fingerprint == "RATE:금리,기준금리,동결"
        assert issue.title == "금리 관련 이슈: 금리/동결"
        assert issue.article_count == 2
        assert issue.publisher_count == 2
        assert issue.first_published_at == hours_ago(3)
        assert issue.last_published_at == hours_ago(2)

    def test_rerun_converges_on_same_issue(self, db, service, article_factory):
        article_factory("금리 동결 발표", "X", hours_ago(3))
        article_factory("한은 기준금리 동결", "Y", hours_ago(2))
        service.cluster_recent_articles(now=NOW)

        article_factory("기준금리 동결 유지", "Z", hours_ago(1))
        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.updated) == (0, 1)
        issue = db.execute(select(Issue)).scalar_one()
        assert issue.article_count == 3
        assert issue.publisher_count == 3
        assert issue.last_published_at == hours_ago(1)
        assert issue.first_published_at == hours_ago(3)
        mapped = db.execute(select(func.count()).select_from(IssueArticle)).scalar_one()
        assert mapped == 3

    def test_idempotent_rerun_adds_no_mappings(self, db, service, article_factory):
        article_factory("금리 동결 발표", "X", hours_ago(3))
        article_factory("한은 기준금리 동결", "Y", hours_ago(2))
        service.cluster_recent_articles(now=NOW)
        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.updated) == (0, 1)
        assert db.execute(select(func.count()).select_from(IssueArticle)).scalar_one() == 2

    def test_unclassified_and_small_clusters(self, db, service, article_factory):
        article_factory("오늘의 날씨 소식", "X", hours_ago(1))
        article_factory("달러 환율 강세", "X", hours_ago(1))

        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.updated, result.skipped) == (0, 0, 1)
        assert db.execute(select(Issue)).first() is None

    def test_fallback_keywords_cluster(self, db, service, article_factory):
        article_factory("달러 강세", "X", hours_ago(2), summary="코스피 영향")
        article_factory("달러 강세 지속", "Y", hours_ago(1), summary="코스피 영향")

        result = service.cluster_recent_articles(now=NOW)

        assert result.created == 1
        issue = db.execute(select(Issue)).scalar_one()
        assert issue.keywords == ["달러", "강세", "코스피"]
        assert issue.fingerprint == "FX:강세,달러,코스피"

    def test_insufficient_keywords_skipped(self, db, service, article_factory):
        article_factory("달러 강세", "X", hours_ago(2))
        article_factory("달러 강세 지속", "Y", hours_ago(1))

        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.skipped) == (0, 1)

    def test_articles_outside_window_ignored(self, db, service, article_factory):
        article_factory("금리 동결 발표", "X", hours_ago(50))
        article_factory("한은 기준금리 동결", "Y", hours_ago(49))

        result = service.cluster_recent_articles(hours=48, now=NOW)

        assert (result.created, result.updated, result.skipped) == (0, 0, 0)

    def test_save_failure_is_isolated(self, db, article_factory, monkeypatch):
        article_factory("금리 동결 발표", "X", hours_ago(3))
        article_factory("한은 기준금리 동결", "Y", hours_ago(2))
        article_factory("달러 강세", "X", hours_ago(2), summary="코스피 영향")
        article_factory("달러 강세 지속", "Y", hours_ago(1), summary="코스피 영향")

        service = IssueClusteringService(db)
        original = service.issue_service.upsert

        def failing_upsert(candidate):
            if candidate.group_name == CategoryGroup.RATE.value:
                raise RuntimeError("boom")
            return original(candidate)

        monkeypatch.setattr(service.issue_service, "upsert", failing_upsert)
        result = service.cluster_recent_articles(now=NOW)

        assert (result.created, result.skipped) == (1, 1)
        assert db.execute(select(Issue.group_name)).scalars().all() == ["FX"]
