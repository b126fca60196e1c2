import re
from datetime import datetime
from typing import Optional

from src.models.base import utc_now

# "newsworthiness" heuristics used to pick representative articles for a card
STRONG_EVENT_KEYWORDS = ["급락", "급등", "폭락", "폭등", "돌파", "붕괴", "사상", "최고", "최저"]
POLICY_KEYWORDS = ["정부", "당국", "개입", "발표", "대책", "회의"]
TIME_KEYWORDS = ["오늘", "하루", "단기간", "최근"]

NUMBER_RE = re.compile(r"\d+(\.\d+)?(%|원|달러|bp|포인트)")


def score(article, now: Optional[datetime] = None) -> int:
    now = now or utc_now()
    text = f"{article.title} {article.summary or ''}"

    total = 0
    total += 3 * sum(1 for k in STRONG_EVENT_KEYWORDS if k in text)
    total += 2 * sum(1 for k in POLICY_KEYWORDS if k in text)
    total += 2 * sum(1 for k in TIME_KEYWORDS if k in text)

    if NUMBER_RE.search(text):
        total += 2

    # whole hours, truncated toward zero
    hours_ago = int((now - article.published_at).total_seconds() / 3600)
    if hours_ago <= 24:
        total += 2
    elif hours_ago <= 48:
        total += 1

    return total
