# src/api/v1/issues.py
import json

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.database.db import get_db
from src.models.card import CardStatus
from src.services.card_service import CardService
from src.services.issue_service import IssueService
from src.services.trending_service import TrendingService
from src.schemas.issue import CardOut, IssueOut, PaginatedIssues, TrendingIssueOut

router = APIRouter(prefix="/issues", tags=["Issues"])


@router.get("/", response_model=PaginatedIssues)
def get_issues(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    group: Optional[str] = None,
    status: Optional[str] = None,
):
    service = IssueService(db)
    return service.get_paginated(page=page, per_page=per_page, group=group, status=status)


# declared before /{issue_id} so "trending" is not read as an id
@router.get("/trending", response_model=List[TrendingIssueOut])
def get_trending(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=50),
):
    return TrendingService(db).get_trending_issues(limit=limit)


@router.get("/{issue_id}", response_model=IssueOut)
def get_issue(issue_id: int, db: Session = Depends(get_db)):
    issue = IssueService(db).find_by_id(issue_id)
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


@router.get("/{issue_id}/card", response_model=CardOut)
def get_issue_card(issue_id: int, db: Session = Depends(get_db)):
    card = CardService(db).find_by_issue_id(issue_id)
    if not card or card.status != CardStatus.ACTIVE.value:
        raise HTTPException(status_code=404, detail="Card not found")
    return CardOut(
        issue_id=card.issue_id,
        issue_fingerprint=card.issue_fingerprint,
        model=card.model,
        status=card.status,
        content=json.loads(card.content_json),
        updated_at=card.updated_at,
    )
