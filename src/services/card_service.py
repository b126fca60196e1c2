# src/services/card_service.py
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import Config
from src.models.card import Card, CardGenerationLog, CardStatus
from src.models.issue import Issue
from src.services.article_service import ArticleService
from src.services.gpt_service import GPTservice
from src.services.issue_service import IssueService
from src.services.prompt_builder import RESPONSE_SCHEMA, PromptBuilder

logger = logging.getLogger(__name__)

MAX_ARTICLES_PER_CARD = 8


@dataclass
class CardGenerationResult:
    success: bool
    card_id: Optional[int] = None
    content_json: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchGenerationResult:
    success_count: int = 0
    skip_count: int = 0
    fail_count: int = 0


def validate_card(content: Dict[str, Any]) -> Optional[str]:
    """Return a validation error message, or None when the card is well-formed."""
    try:
        validate(instance=content, schema=RESPONSE_SCHEMA)
    except ValidationError as e:
        return e.message
    return None


class CardService:
    def __init__(self, db: Session):
        self.db = db

    def find_by_issue_id(self, issue_id: int) -> Optional[Card]:
        stmt = select(Card).where(Card.issue_id == issue_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def exists_active(self, issue_id: int) -> bool:
        card = self.find_by_issue_id(issue_id)
        return card is not None and card.status == CardStatus.ACTIVE.value

    def find_conclusion(self, issue_id: int) -> Optional[str]:
        card = self.find_by_issue_id(issue_id)
        if card is None or card.status != CardStatus.ACTIVE.value:
            return None
        try:
            return json.loads(card.content_json).get("conclusion")
        except (ValueError, AttributeError):
            return None

    def upsert(self, issue: Issue, model: str, content_json: str, status: CardStatus) -> Card:
        card = self.find_by_issue_id(issue.id)
        if card is None:
            card = Card(issue_id=issue.id, issue_fingerprint=issue.fingerprint)
            self.db.add(card)
        card.model = model
        card.content_json = content_json
        card.status = status.value
        self.db.commit()
        return card

    def log_attempt(self, issue: Issue, success: bool, latency_ms: int, error: Optional[str] = None) -> None:
        self.db.add(CardGenerationLog(
            issue_id=issue.id,
            issue_fingerprint=issue.fingerprint,
            attempt=1,
            success=success,
            error_message=error[:2000] if error else None,
            latency_ms=latency_ms,
        ))
        self.db.commit()


class CardGenerationService:
    def __init__(self, db: Session, gpt=None, prompt_builder: Optional[PromptBuilder] = None, model: Optional[str] = None):
        self.db = db
        self.issue_service = IssueService(db)
        self.article_service = ArticleService(db)
        self.card_service = CardService(db)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.model = model or Config.OPENAI_MODEL
        self._gpt = gpt

    @property
    def gpt(self):
        # created lazily: the OpenAI client requires an API key at construction time
        if self._gpt is None:
            self._gpt = GPTservice(model=self.model)
        return self._gpt

    def generate_card_for_issue(self, issue_id: int) -> CardGenerationResult:
        issue = self.issue_service.find_by_id(issue_id)
        if issue is None:
            logger.warning(f"Issue not found: {issue_id}")
            return CardGenerationResult(False, error="Issue not found")
        return self.generate_card(issue)

    def generate_cards_for_targets(self, hours: int = 48, limit: int = 50) -> BatchGenerationResult:
        targets = self.issue_service.find_card_generation_targets(hours=hours, limit=limit)
        result = BatchGenerationResult()
        if not targets:
            logger.info("No card generation targets found")
            return result

        logger.info(f"Found {len(targets)} card generation targets")
        for issue in targets:
            # FAILED cards are retried, ACTIVE ones are kept
            if self.card_service.exists_active(issue.id):
                logger.debug(f"Active card already exists for issue {issue.id}")
                result.skip_count += 1
                continue

            try:
                outcome = self.generate_card(issue)
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Card generation crashed for issue {issue.id}: {e}")
                outcome = CardGenerationResult(False, error=str(e))

            if outcome.success:
                result.success_count += 1
            else:
                result.fail_count += 1

        logger.info(
            f"Card generation completed: {result.success_count} success, "
            f"{result.skip_count} skipped, {result.fail_count} failed"
        )
        return result

    def generate_card(self, issue: Issue) -> CardGenerationResult:
        links = self.issue_service.find_article_links_by_issue_id(issue.id)
        articles = self.article_service.find_by_links_for_card(links, MAX_ARTICLES_PER_CARD)
        if not articles:
            logger.warning(f"No articles found for issue {issue.id}")
            return CardGenerationResult(False, error="No articles found")

        prompt = self.prompt_builder.build(issue, articles)

        started = time.monotonic()
        try:
            content = self.gpt.generate_card(self.prompt_builder.system_instruction, prompt, RESPONSE_SCHEMA)
        except Exception as e:
            latency_ms = int((time.monotonic() - started) * 1000)
            self.card_service.log_attempt(issue, False, latency_ms, str(e))
            logger.error(f"LLM call failed for issue {issue.id}: {e}")
            return CardGenerationResult(False, error=str(e))

        latency_ms = int((time.monotonic() - started) * 1000)
        self.card_service.log_attempt(issue, True, latency_ms)

        content_json = json.dumps(content, ensure_ascii=False)
        error = validate_card(content)
        if error is not None:
            logger.error(f"Invalid card JSON for issue {issue.id}: {error}")
            self.card_service.upsert(issue, self.model, content_json, CardStatus.FAILED)
            return CardGenerationResult(False, content_json=content_json, error=error)

        card = self.card_service.upsert(issue, self.model, content_json, CardStatus.ACTIVE)
        self.issue_service.update_headline(issue.id, content.get("headline"), content.get("signal_summary"))

        logger.info(f"Generated card {card.id} for issue {issue.id}")
        return CardGenerationResult(True, card_id=card.id, content_json=content_json)
