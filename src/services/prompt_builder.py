import re
from datetime import datetime
from typing import List, Optional

from src.models.base import utc_now
from src.services import event_scorer

DATE_FORMAT = "%Y-%m-%d %H:%M"

DEFAULT_SAMPLE_SIZE = 5
MIN_SAMPLE_SIZE = 3
LARGE_ISSUE_ARTICLES = 12

MAX_TITLE_LEN = 120
MAX_SUMMARY_LEN = 260

SYSTEM_INSTRUCTION = (
    "너는 경제 뉴스 분석 서비스의 에디터다. 여러 언론사의 기사를 종합해 "
    "이슈 결론 카드와 사용자용 헤드라인을 만든다. 기사에 근거한 사실만 사용하고, "
    "투자 추천이나 단정적 예측은 하지 않는다. headline은 25자, signal_summary는 30자 이내로 쓴다."
)

RESPONSE_SCHEMA = {
    "type": "object",
    "required": [
        "headline",
        "signal_summary",
        "issue_title",
        "conclusion",
        "why_it_matters",
        "evidence",
        "counter_scenario",
        "impact",
        "action_guide",
    ],
    "properties": {
        "headline": {"type": "string"},
        "signal_summary": {"type": "string"},
        "issue_title": {"type": "string"},
        "conclusion": {"type": "string"},
        "why_it_matters": {"type": "string"},
        "evidence": {
            "type": "array",
            "minItems": 2,
            "maxItems": 4,
            "items": {
                "type": "object",
                "required": ["fact", "source"],
                "properties": {
                    "fact": {"type": "string"},
                    "source": {"type": "string"},
                },
            },
        },
        "counter_scenario": {"type": "string"},
        "impact": {
            "type": "object",
            "required": ["score", "reason"],
            "properties": {
                "score": {"type": "integer", "minimum": 0, "maximum": 5},
                "reason": {"type": "string"},
            },
        },
        "action_guide": {"type": "string"},
    },
}


class PromptBuilder:
    """Turns an issue and its articles into the user message for card generation."""

    system_instruction = SYSTEM_INSTRUCTION

    def build(self, issue, articles: List, now: Optional[datetime] = None) -> str:
        now = now or utc_now()
        sample_size = DEFAULT_SAMPLE_SIZE if len(articles) >= LARGE_ISSUE_ARTICLES else MIN_SAMPLE_SIZE
        sampled = self.sample_representative_articles(articles, sample_size, now=now)

        return "\n\n".join([
            "=== 이슈 정보 ===\n" + self._issue_info(issue),
            "=== 관련 기사(대표 샘플) ===\n" + self._sample_note(articles, sampled) + "\n\n" + self._articles_info(sampled),
            "위 기사들을 종합 분석하여 결론 카드 JSON을 생성해라.",
        ])

    @staticmethod
    def sample_representative_articles(articles: List, desired: int, now: Optional[datetime] = None) -> List:
        """
        Highest event score first, one article per publisher; when that leaves
        the sample short, top up by score allowing repeated publishers.
        """
        if not articles:
            return []
        target = min(max(desired, MIN_SAMPLE_SIZE), DEFAULT_SAMPLE_SIZE)

        unique = list({a.link: a for a in articles}.values())
        scored = sorted(unique, key=lambda a: event_scorer.score(a, now=now), reverse=True)

        picked, used_publishers = [], set()
        for article in scored:
            if len(picked) >= target:
                break
            publisher = (article.publisher or "").strip() or "unknown"
            if publisher not in used_publishers:
                picked.append(article)
                used_publishers.add(publisher)

        for article in scored:
            if len(picked) >= target:
                break
            if article not in picked:
                picked.append(article)

        return picked

    @staticmethod
    def _issue_info(issue) -> str:
        return "\n".join([
            f"- 분류: {issue.group.display_name}",
            f"- 핑거프린트: {issue.fingerprint}",
            f"- 키워드: {', '.join(issue.keywords)}",
            f"- 최초 발행: {issue.first_published_at.strftime(DATE_FORMAT)}",
            f"- 최근 발행: {issue.last_published_at.strftime(DATE_FORMAT)}",
            f"- 기사 수: {issue.article_count}",
            f"- 출처 수: {issue.publisher_count}",
        ])

    @staticmethod
    def _sample_note(all_articles: List, sampled: List) -> str:
        publishers = {a.publisher.strip() for a in all_articles if a.publisher and a.publisher.strip()}
        dates = [a.published_at for a in all_articles]
        earliest = min(dates).strftime(DATE_FORMAT) if dates else "unknown"
        latest = max(dates).strftime(DATE_FORMAT) if dates else "unknown"
        return "\n".join([
            f"- 전체 기사: {len(all_articles)}건 / 전체 언론사: {len(publishers)}개",
            f"- 기사 발행 범위: {earliest} ~ {latest}",
            f"- 아래는 언론사 다양성과 사건성을 고려한 대표 {len(sampled)}건 샘플이다.",
        ])

    @classmethod
    def _articles_info(cls, articles: List) -> str:
        blocks = []
        for i, a in enumerate(articles, start=1):
            blocks.append("\n".join([
                f"[{i}] {a.publisher.strip()}",
                f"제목: {normalize_text(a.title, MAX_TITLE_LEN)}",
                f"요약: {normalize_text(a.summary, MAX_SUMMARY_LEN)}",
                f"발행: {a.published_at.strftime(DATE_FORMAT)}",
                f"링크: {a.link}",
            ]))
        return "\n\n".join(blocks)


def normalize_text(value: Optional[str], max_len: int) -> str:
    s = re.sub(r"\s+", " ", (value or "").strip())
    if not s:
        return "-"
    return s if len(s) <= max_len else s[: max_len - 1] + "…"
