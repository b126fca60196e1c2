# src/api/v1/health.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config import Config
from src.database.db import get_db
from src.services.pipeline_service import PipelineRunService
from src.schemas.pipeline import PipelineHealthOut

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/")
def health():
    return {"status": "ok"}


@router.get("/pipeline", response_model=PipelineHealthOut)
def pipeline_health(db: Session = Depends(get_db)):
    runs = PipelineRunService(db).find_recent(limit=1)
    last_run = runs[0] if runs else None
    return {
        "status": last_run.status if last_run else "UNKNOWN",
        "pipeline_enabled": Config.PIPELINE_ENABLED,
        "last_run": last_run,
    }
