import hashlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from src.models.category import CategoryGroup
from src.models.issue import Issue
from src.services import category_service
from src.services.article_service import ArticleService
from src.services.issue_service import IssueService

logger = logging.getLogger(__name__)

MIN_COMMON_KEYWORDS = 2
MAX_TIME_DIFF = timedelta(hours=48)
MIN_ARTICLES_FOR_ISSUE = 2
MIN_PUBLISHERS_FOR_ISSUE = 2
MAX_KEYWORDS_PER_ISSUE = 8
MIN_KEYWORDS_PER_ISSUE = 3
FINGERPRINT_MAX_LENGTH = 64


@dataclass
class ClassifiedArticle:
    article: object  # anything with title/summary/link/publisher/published_at
    group: CategoryGroup
    keywords: List[str]

    @property
    def text(self) -> str:
        return f"{self.article.title} {self.article.summary or ''}"


@dataclass
class ArticleCluster:
    group: CategoryGroup
    articles: List[ClassifiedArticle] = field(default_factory=list)

    @property
    def publisher_count(self) -> int:
        return len({a.article.publisher for a in self.articles})

    @property
    def merged_keywords(self) -> List[str]:
        """All member keywords, most frequent first; ties keep first-seen order."""
        counts = Counter(k for a in self.articles for k in a.keywords)
        return [k for k, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)]


@dataclass
class ClusteringResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0


class IssueClusteringService:
    """
    Groups recent articles into issues.

    Articles are classified into a CategoryGroup, then clustered greedily inside
    each group: the newest unconsumed article seeds a cluster and absorbs every
    similar unconsumed article in a single scan. Clusters that pass the size
    gates are upserted as issues keyed by a keyword fingerprint, so repeated
    runs over overlapping windows land on the same row.
    """

    def __init__(
        self,
        db: Session,
        issue_service: Optional[IssueService] = None,
        article_service: Optional[ArticleService] = None,
    ):
        self.db = db
        self.issue_service = issue_service or IssueService(db)
        self.article_service = article_service or ArticleService(db)

    def cluster_recent_articles(self, hours: int = 48, limit: int = 1000, now: Optional[datetime] = None) -> ClusteringResult:
        logger.info(f"Starting clustering for articles from last {hours} hours, limit={limit}")

        # query failures propagate: the orchestrator treats them as a failed stage
        articles = self.article_service.find_recent_articles(hours=hours, limit=limit, now=now)
        if not articles:
            logger.info("No recent articles found")
            return ClusteringResult()

        logger.info(f"Loaded {len(articles)} articles for clustering")
        return self.cluster_articles(articles)

    def cluster_articles(self, articles: List) -> ClusteringResult:
        classified = self.classify_articles(articles)
        logger.info(f"Classified {len(classified)} out of {len(articles)} articles")

        by_group: Dict[CategoryGroup, List[ClassifiedArticle]] = {}
        for item in classified:
            by_group.setdefault(item.group, []).append(item)

        result = ClusteringResult()
        for group in CategoryGroup:
            group_articles = by_group.get(group)
            if not group_articles:
                continue
            logger.debug(f"Processing group {group.value}: {len(group_articles)} articles")

            for cluster in self.cluster_within_group(group_articles):
                if not self.meets_minimum_requirements(cluster):
                    logger.debug(
                        f"Cluster skipped (below minimum): {len(cluster.articles)} articles, "
                        f"{cluster.publisher_count} publishers"
                    )
                    result.skipped += 1
                    continue

                outcome = self.save_cluster(cluster)
                if outcome == "created":
                    result.created += 1
                elif outcome == "updated":
                    result.updated += 1
                else:
                    result.skipped += 1

        logger.info(
            f"Clustering completed: {result.created} created, {result.updated} updated, {result.skipped} skipped"
        )
        return result

    @staticmethod
    def classify_articles(articles: List) -> List[ClassifiedArticle]:
        classified = []
        for article in articles:
            text = f"{article.title} {article.summary or ''}"
            group = category_service.classify(text)
            if group is None:
                logger.debug(f"Article not classified: {article.title}")
                continue
            classified.append(ClassifiedArticle(article, group, category_service.extract_keywords(text, group)))
        return classified

    @classmethod
    def cluster_within_group(cls, articles: List[ClassifiedArticle]) -> List[ArticleCluster]:
        clusters: List[ArticleCluster] = []
        used = set()  # article links

        ordered = sorted(articles, key=lambda a: a.article.published_at, reverse=True)
        for seed in ordered:
            if seed.article.link in used:
                continue

            cluster = ArticleCluster(group=seed.group, articles=[seed])
            used.add(seed.article.link)

            for candidate in ordered:
                if candidate.article.link in used:
                    continue
                if cls.is_similar(seed, candidate):
                    cluster.articles.append(candidate)
                    used.add(candidate.article.link)

            clusters.append(cluster)
        return clusters

    @staticmethod
    def is_similar(a: ClassifiedArticle, b: ClassifiedArticle) -> bool:
        if a.group != b.group:
            return False
        if abs(a.article.published_at - b.article.published_at) > MAX_TIME_DIFF:
            return False
        return len(set(a.keywords) & set(b.keywords)) >= MIN_COMMON_KEYWORDS

    @staticmethod
    def meets_minimum_requirements(cluster: ArticleCluster) -> bool:
        if len(cluster.articles) < MIN_ARTICLES_FOR_ISSUE:
            return False
        return cluster.publisher_count >= MIN_PUBLISHERS_FOR_ISSUE

    @staticmethod
    def resolve_keywords(cluster: ArticleCluster) -> Optional[List[str]]:
        """
        Keyword profile of a cluster, first source with at least
        MIN_KEYWORDS_PER_ISSUE keywords wins:
          1. merged group keywords, by frequency
          2. keywords of every group found in the articles' full text
        None when neither source is descriptive enough.
        """
        merged = cluster.merged_keywords[:MAX_KEYWORDS_PER_ISSUE]
        if len(merged) >= MIN_KEYWORDS_PER_ISSUE:
            return merged

        fallback = list(dict.fromkeys(
            k for a in cluster.articles for k in category_service.extract_all_keywords(a.text)
        ))[:MAX_KEYWORDS_PER_ISSUE]
        if len(fallback) >= MIN_KEYWORDS_PER_ISSUE:
            return fallback

        return None

    @staticmethod
    def generate_fingerprint(group: CategoryGroup, keywords: List[str]) -> str:
        raw = f"{group.value}:" + ",".join(sorted(keywords[:3]))
        if len(raw) <= FINGERPRINT_MAX_LENGTH:
            return raw
        digest = hashlib.sha256(raw.encode("utf-8")).digest()
        return f"{group.value}:" + digest[:16].hex()

    @staticmethod
    def generate_title(group: CategoryGroup, keywords: List[str]) -> str:
        return f"{group.title_template}: " + "/".join(keywords[:2])

    def save_cluster(self, cluster: ArticleCluster) -> str:
        """Persist one cluster in its own transaction. Returns created/updated/skipped."""
        keywords = self.resolve_keywords(cluster)
        if keywords is None:
            logger.debug("Cluster skipped (insufficient keywords)")
            return "skipped"

        fingerprint = self.generate_fingerprint(cluster.group, keywords)
        title = self.generate_title(cluster.group, keywords)
        articles = [a.article for a in cluster.articles]
        published = [a.published_at for a in articles]

        candidate = Issue(
            group=cluster.group,
            title=title,
            keywords=keywords,
            first_published_at=min(published),
            last_published_at=max(published),
            article_count=len(articles),
            publisher_count=cluster.publisher_count,
            fingerprint=fingerprint,
        )

        try:
            issue, is_new = self.issue_service.upsert(candidate)
            self.issue_service.add_articles_to_issue(issue.id, articles)
            self.issue_service.sync_article_count(issue)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Failed to save issue {title} (fingerprint={fingerprint}): {e}")
            return "skipped"

        if is_new:
            logger.info(f"Created new issue: {title} (fingerprint={fingerprint})")
            return "created"
        logger.info(f"Updated existing issue: {title} (fingerprint={fingerprint})")
        return "updated"
