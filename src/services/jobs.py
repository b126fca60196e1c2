import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from config import Config
from src.services.lifecycle_service import LifecycleService
from src.services.pipeline_service import PipelineOrchestrator, PipelineResult

logger = logging.getLogger(__name__)


class RunGuard:
    """
    Skips a job when a previous run has not finished.

    Two locks are held for the duration of a run: a `threading.Lock` for
    the current process and a non-blocking Redis lock shared by every
    worker process on the same broker.
    """

    def __init__(self, name: str, client: Optional[redis.Redis] = None, timeout: Optional[int] = None):
        self.name = name
        self.timeout = timeout or Config.RUN_LOCK_TIMEOUT_SECONDS
        self._client = client
        self._lock = threading.Lock()

    @property
    def key(self) -> str:
        return "econews:run-guard:" + self.name.replace(" ", "-")

    def is_running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        if not self._lock.acquire(blocking=False):
            logger.warning(f"{self.name} is already running, skipping this run")
            yield False
            return
        try:
            shared = (self._client or get_redis()).lock(self.key, timeout=self.timeout, blocking=False)
            try:
                acquired = shared.acquire()
            except RedisError as e:
                logger.error(f"Could not take the {self.name} run lock: {e}")
                acquired = False
            if not acquired:
                logger.warning(f"{self.name} is already running in another worker, skipping this run")
                yield False
                return
            try:
                yield True
            finally:
                try:
                    shared.release()
                except RedisError as e:
                    logger.warning(f"Could not release the {self.name} run lock: {e}")
        finally:
            self._lock.release()


_redis: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.Redis.from_url(Config.REDIS_URL)
    return _redis


pipeline_guard = RunGuard("pipeline")
lifecycle_guard = RunGuard("lifecycle update")


def run_pipeline(db: Session, orchestrator: Optional[PipelineOrchestrator] = None) -> Optional[PipelineResult]:
    if not Config.PIPELINE_ENABLED:
        logger.info("Pipeline is disabled, skipping")
        return None

    with pipeline_guard.hold() as acquired:
        if not acquired:
            return None
        try:
            return (orchestrator or PipelineOrchestrator(db)).run_once()
        except Exception as e:
            logger.exception(f"Unexpected pipeline error: {e}")
            return None


def run_lifecycle_update(db: Session, service: Optional[LifecycleService] = None) -> int:
    with lifecycle_guard.hold() as acquired:
        if not acquired:
            return -1
        try:
            updated = (service or LifecycleService(db)).update_all_active_lifecycles()
            logger.info(f"Lifecycle update finished: {updated} issues")
            return updated
        except Exception as e:
            logger.exception(f"Lifecycle update failed: {e}")
            return -1
