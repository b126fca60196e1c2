import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Union

import requests

from src.models.source import Source
from src.services.article_service import ArticleService


class BaseParser(ABC):
    # statuses worth retrying
    _RETRY_STATUS = {429, 500, 502, 503, 504}

    _DEFAULT_HEADERS = {
        "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
                      "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "ko-KR,ko;q=0.9,en;q=0.8",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }

    def __init__(self, source: Source, service: ArticleService):
        self.source = source
        self.service = service

        self._session = requests.Session()
        self._session.headers.update(self._DEFAULT_HEADERS)

        # subclasses may override the user agent with a UA attribute
        if hasattr(self, "UA") and isinstance(getattr(self, "UA"), str):
            self._session.headers["User-Agent"] = getattr(self, "UA")

    @abstractmethod
    def parse(self) -> int:
        """Collect articles from the source and return how many were stored."""

    def fetch_html(
        self,
        url: str,
        as_bytes: bool = False,
        *,
        timeout: float = 15.0,
        retries: int = 2,
        backoff: float = 0.6,
        extra_headers: Optional[Dict[str, str]] = None,
        allow_404: bool = False,
    ) -> Union[str, bytes]:
        """
        Fetch a document by URL.
        - timeout: per-request timeout (seconds)
        - retries: extra attempts on network errors, 429 and 5xx
        - backoff: base of the exponential delay between attempts (seconds)
        - extra_headers: headers for this request only
        - allow_404: return an empty result instead of raising on 404
        """
        headers = dict(self._session.headers)
        if extra_headers:
            headers.update(extra_headers)

        for attempt in range(retries + 1):
            try:
                resp = self._session.get(url, headers=headers, timeout=timeout, allow_redirects=True)

                if resp.status_code == 404 and allow_404:
                    return b"" if as_bytes else ""

                if resp.status_code in self._RETRY_STATUS and attempt < retries:
                    time.sleep(backoff * (2 ** attempt))
                    continue

                resp.raise_for_status()

                if as_bytes:
                    return resp.content

                if not resp.encoding:
                    resp.encoding = resp.apparent_encoding or "utf-8"
                return resp.text

            except requests.RequestException as e:
                if attempt < retries:
                    time.sleep(backoff * (2 ** attempt))
                    continue
                raise RuntimeError(f"Failed to fetch {url}: {e}") from e

        raise RuntimeError(f"Failed to fetch {url}: retries exhausted")
