import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from src.models.base import utc_now
from src.models.issue import IssueArticle
from src.models.lifecycle import IssueArticleHistory, IssueLifecycle, IssueLifecycleStage

logger = logging.getLogger(__name__)

MIN_ARTICLE_THRESHOLD = 3

# change vs. peak, in percent
THRESHOLD_PEAK = -5
THRESHOLD_DECLINING = -30
THRESHOLD_DORMANT = -70

TREND_RISING = 0.1
TREND_FALLING = -0.1
TREND_REBOUND = 0.15

MIN_HISTORY_FOR_ANALYSIS = 3
TREND_WINDOW = 3
CURRENT_WINDOW = timedelta(hours=24)
HISTORY_RETENTION_DAYS = 7


@dataclass
class HistoryPoint:
    article_count: int
    recorded_at: datetime


@dataclass
class LifecycleSnapshot:
    issue_id: int
    stage: IssueLifecycleStage
    change_percent: int
    peak_article_count: int
    current_article_count: int
    peak_date: Optional[datetime]
    stage_changed_at: datetime


def calculate_trend(recent_history: Sequence[HistoryPoint], current_count: int) -> float:
    """
    Normalised slope over the recent window: mean step-to-step change divided
    by the mean count. Positive means rising, negative falling.
    """
    if not recent_history:
        return 0.0

    counts = [h.article_count for h in recent_history] + [current_count]
    if len(counts) < 2:
        return 0.0

    avg_change = sum(counts[i] - counts[i - 1] for i in range(1, len(counts))) / (len(counts) - 1)
    avg_count = sum(counts) / len(counts)
    return avg_change / avg_count if avg_count > 0 else 0.0


def determine_stage(
    current_count: int,
    peak_count: int,
    change_percent: int,
    trend: float,
    prev_stage: Optional[IssueLifecycleStage],
) -> IssueLifecycleStage:
    if current_count < MIN_ARTICLE_THRESHOLD:
        return IssueLifecycleStage.DORMANT

    if peak_count < MIN_ARTICLE_THRESHOLD:
        return IssueLifecycleStage.EMERGING

    if change_percent >= THRESHOLD_PEAK:
        if trend > TREND_RISING:
            # an issue already at PEAK stays there while still climbing
            if prev_stage == IssueLifecycleStage.PEAK:
                return IssueLifecycleStage.PEAK
            return IssueLifecycleStage.SPREADING
        if trend < TREND_FALLING:
            return IssueLifecycleStage.DECLINING
        return IssueLifecycleStage.PEAK

    if change_percent >= THRESHOLD_DECLINING:
        if trend > TREND_REBOUND:
            return IssueLifecycleStage.SPREADING
        return IssueLifecycleStage.DECLINING

    if change_percent >= THRESHOLD_DORMANT:
        return IssueLifecycleStage.DECLINING

    return IssueLifecycleStage.DORMANT


def calculate_lifecycle(
    issue_id: int,
    current_count: int,
    history: Sequence[HistoryPoint],
    prev: Optional[IssueLifecycle],
    now: datetime,
) -> LifecycleSnapshot:
    prev_stage = prev.stage_enum if prev is not None else None

    def changed_at(stage: IssueLifecycleStage) -> datetime:
        if prev is not None and prev_stage == stage:
            return prev.stage_changed_at
        return now

    if len(history) < MIN_HISTORY_FOR_ANALYSIS:
        stage = IssueLifecycleStage.EMERGING
        return LifecycleSnapshot(
            issue_id=issue_id,
            stage=stage,
            change_percent=0,
            peak_article_count=current_count,
            current_article_count=current_count,
            peak_date=None,
            stage_changed_at=changed_at(stage),
        )

    # first maximum wins, like max() on the ascending series
    peak_record = max(history, key=lambda h: h.article_count)
    peak_count = max(peak_record.article_count, current_count)
    peak_date = now if current_count >= peak_record.article_count else peak_record.recorded_at

    # truncated toward zero, so -5.5 stays in the near-peak band
    change_percent = int((current_count - peak_count) / peak_count * 100) if peak_count > 0 else 0
    trend = calculate_trend(list(history)[-TREND_WINDOW:], current_count)

    stage = determine_stage(current_count, peak_count, change_percent, trend, prev_stage)

    return LifecycleSnapshot(
        issue_id=issue_id,
        stage=stage,
        change_percent=change_percent,
        peak_article_count=peak_count,
        current_article_count=current_count,
        peak_date=None if stage == IssueLifecycleStage.EMERGING else peak_date,
        stage_changed_at=changed_at(stage),
    )


class LifecycleService:
    def __init__(self, db: Session):
        self.db = db

    # ======== READ ========
    def get_lifecycle(self, issue_id: int) -> Optional[IssueLifecycle]:
        return self.db.get(IssueLifecycle, issue_id)

    def get_lifecycles(self, issue_ids: List[int]) -> Dict[int, IssueLifecycle]:
        if not issue_ids:
            return {}
        stmt = select(IssueLifecycle).where(IssueLifecycle.issue_id.in_(issue_ids))
        return {lc.issue_id: lc for lc in self.db.execute(stmt).scalars().all()}

    def get_current_article_count(self, issue_id: int, now: Optional[datetime] = None) -> int:
        since = (now or utc_now()) - CURRENT_WINDOW
        stmt = (
            select(func.count())
            .select_from(IssueArticle)
            .where(IssueArticle.issue_id == issue_id)
            .where(IssueArticle.published_at >= since)
        )
        return self.db.execute(stmt).scalar_one()

    def get_article_history(self, issue_id: int, days: int = HISTORY_RETENTION_DAYS, now: Optional[datetime] = None) -> List[HistoryPoint]:
        since = (now or utc_now()) - timedelta(days=days)
        stmt = (
            select(IssueArticleHistory)
            .where(IssueArticleHistory.issue_id == issue_id)
            .where(IssueArticleHistory.recorded_at >= since)
            .order_by(IssueArticleHistory.recorded_at.asc(), IssueArticleHistory.id.asc())
        )
        return [HistoryPoint(h.article_count, h.recorded_at) for h in self.db.execute(stmt).scalars().all()]

    def get_active_issue_ids(self, since: datetime) -> List[int]:
        stmt = (
            select(IssueArticle.issue_id)
            .where(IssueArticle.published_at >= since)
            .group_by(IssueArticle.issue_id)
            .order_by(IssueArticle.issue_id)
        )
        return list(self.db.execute(stmt).scalars().all())

    # ======== WRITE ========
    def update_lifecycle(self, issue_id: int, now: Optional[datetime] = None) -> IssueLifecycle:
        now = now or utc_now()

        current_count = self.get_current_article_count(issue_id, now=now)
        history = self.get_article_history(issue_id, now=now)
        prev = self.get_lifecycle(issue_id)

        snapshot = calculate_lifecycle(issue_id, current_count, history, prev, now)

        lifecycle = prev
        if lifecycle is None:
            lifecycle = IssueLifecycle(issue_id=issue_id, created_at=now)
            self.db.add(lifecycle)
        lifecycle.stage = snapshot.stage.value
        lifecycle.change_percent = snapshot.change_percent
        lifecycle.peak_article_count = snapshot.peak_article_count
        lifecycle.current_article_count = snapshot.current_article_count
        lifecycle.peak_date = snapshot.peak_date
        lifecycle.stage_changed_at = snapshot.stage_changed_at
        lifecycle.updated_at = now

        # recorded on every evaluation, whatever the stage
        self.db.add(IssueArticleHistory(issue_id=issue_id, article_count=current_count, recorded_at=now))
        self.db.commit()

        logger.debug(f"Updated lifecycle for issue {issue_id}: {snapshot.stage.value} ({snapshot.change_percent}%)")
        return lifecycle

    def update_all_active_lifecycles(self, now: Optional[datetime] = None) -> int:
        now = now or utc_now()
        since = now - timedelta(days=HISTORY_RETENTION_DAYS)

        issue_ids = self.get_active_issue_ids(since)
        logger.info(f"Updating lifecycles for {len(issue_ids)} active issues")

        updated = 0
        for issue_id in issue_ids:
            try:
                self.update_lifecycle(issue_id, now=now)
                updated += 1
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to update lifecycle for issue {issue_id}: {e}")

        deleted = self.delete_old_history(now=now)
        if deleted > 0:
            logger.info(f"Deleted {deleted} old history records")

        return updated

    def delete_old_history(self, days: int = HISTORY_RETENTION_DAYS, now: Optional[datetime] = None) -> int:
        cutoff = (now or utc_now()) - timedelta(days=days)
        result = self.db.execute(delete(IssueArticleHistory).where(IssueArticleHistory.recorded_at < cutoff))
        self.db.commit()
        return result.rowcount or 0
