import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import Config
from src.models.base import utc_now
from src.models.pipeline_run import PipelineRun, PipelineStage, PipelineStatus
from src.services.card_service import CardGenerationService
from src.services.clustering_service import IssueClusteringService
from src.services.collector_service import CollectorService

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE = 2000


@dataclass
class PipelineResult:
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    rss_saved_count: int = 0
    issues_created_count: int = 0
    issues_updated_count: int = 0
    cards_created_count: int = 0
    cards_failed_count: int = 0
    status: PipelineStatus = PipelineStatus.SUCCESS
    error_stage: Optional[PipelineStage] = None
    error_message: Optional[str] = None

    def fail(self, stage: PipelineStage, error: Exception) -> None:
        self.status = PipelineStatus.FAILED
        self.error_stage = stage
        self.error_message = str(error)[:MAX_ERROR_MESSAGE]

    def degrade(self, stage: PipelineStage, message: str) -> None:
        if self.status == PipelineStatus.SUCCESS:
            self.status = PipelineStatus.PARTIAL
            self.error_stage = stage
            self.error_message = message[:MAX_ERROR_MESSAGE]


class PipelineRunService:
    def __init__(self, db: Session):
        self.db = db

    def insert(self, result: PipelineResult) -> PipelineRun:
        run = PipelineRun(
            started_at=result.started_at,
            finished_at=result.finished_at,
            duration_ms=result.duration_ms,
            rss_saved_count=result.rss_saved_count,
            issues_created_count=result.issues_created_count,
            issues_updated_count=result.issues_updated_count,
            cards_created_count=result.cards_created_count,
            cards_failed_count=result.cards_failed_count,
            status=result.status.value,
            error_stage=result.error_stage.value if result.error_stage else None,
            error_message=result.error_message,
        )
        self.db.add(run)
        self.db.commit()
        return run

    def find_recent(self, limit: int = 10) -> List[PipelineRun]:
        stmt = select(PipelineRun).order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())


class PipelineOrchestrator:
    """
    RSS collection -> issue clustering -> card generation, in that order.

    A failed collection only degrades the run since clustering can still work
    on what is already stored. A failed clustering stops the run.
    """

    def __init__(
        self,
        db: Session,
        collector: Optional[CollectorService] = None,
        clustering: Optional[IssueClusteringService] = None,
        cards: Optional[CardGenerationService] = None,
    ):
        self.db = db
        self.collector = collector or CollectorService(db)
        self.clustering = clustering or IssueClusteringService(db)
        self.cards = cards or CardGenerationService(db)
        self.run_service = PipelineRunService(db)

    def run_once(self) -> PipelineResult:
        result = PipelineResult(started_at=utc_now())
        started = time.monotonic()
        logger.info("Pipeline run started")

        try:
            result.rss_saved_count = self.collector.collect_all()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"RSS collection failed: {e}")
            result.degrade(PipelineStage.RSS_COLLECT, str(e))

        try:
            clustering = self.clustering.cluster_recent_articles(
                hours=Config.CLUSTER_WINDOW_HOURS, limit=Config.CLUSTER_ARTICLE_LIMIT
            )
            result.issues_created_count = clustering.created
            result.issues_updated_count = clustering.updated
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Issue clustering failed: {e}")
            result.fail(PipelineStage.ISSUE_CLUSTER, e)
            return self._finish(result, started)

        try:
            batch = self.cards.generate_cards_for_targets(
                hours=Config.CARD_TARGET_HOURS, limit=Config.CARD_TARGET_LIMIT
            )
            result.cards_created_count = batch.success_count
            result.cards_failed_count = batch.fail_count
            if batch.fail_count > 0:
                result.degrade(PipelineStage.CARD_GENERATE, f"{batch.fail_count} card(s) failed")
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Card generation failed: {e}")
            result.fail(PipelineStage.CARD_GENERATE, e)

        return self._finish(result, started)

    def _finish(self, result: PipelineResult, started: float) -> PipelineResult:
        result.finished_at = utc_now()
        result.duration_ms = int((time.monotonic() - started) * 1000)

        try:
            self.run_service.insert(result)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save pipeline run: {e}")

        logger.info(
            f"Pipeline finished: status={result.status.value}, duration={result.duration_ms}ms, "
            f"rss={result.rss_saved_count}, issues created={result.issues_created_count} "
            f"updated={result.issues_updated_count}, cards created={result.cards_created_count} "
            f"failed={result.cards_failed_count}"
        )
        return result
