"""RSS/Atom news source (news sites and Reddit listings)."""

import re
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

import feedparser
import httpx

from crypto_sentiment.errors import UpstreamFailureError
from crypto_sentiment.sources.base import RawArticle
from crypto_sentiment.utils.log import log_debug

USER_AGENT = "crypto-sentiment-gateway/1.0"

_SOURCE_NAMES = {
  "cointelegraph": "Cointelegraph",
  "coindesk": "CoinDesk",
  "cryptonews": "CryptoNews",
  "decrypt": "Decrypt",
  "reddit": "Reddit",
}

_TAG = re.compile(r"<[^>]+>")


def source_name(url: str) -> str:
  """Display name for a feed, derived from its host."""
  host = urlparse(url).netloc.lower()
  for needle, name in _SOURCE_NAMES.items():
    if needle in host:
      if name == "Reddit":
        match = re.search(r"/r/([^/]+)", url)
        return f"Reddit r/{match.group(1)}" if match else name
      return name
  return host or "Unknown"


def _strip_html(text: str) -> str:
  return _TAG.sub("", text or "").strip()


def _published(entry: dict) -> datetime:
  ts = entry.get("published_parsed") or entry.get("updated_parsed")
  if ts:
    return datetime(*ts[:6], tzinfo=timezone.utc)
  return datetime.now(timezone.utc)


def _summary(entry: dict) -> str:
  summary = entry.get("summary") or entry.get("description")
  if not summary:
    content = entry.get("content")
    if content and isinstance(content, list):
      summary = content[0].get("value")
  return _strip_html(summary) if summary else ""


class RssSource:
  """Fetch one feed over httpx and parse it with feedparser.

  Args:
    url: Feed URL.
    client: Shared ``httpx.AsyncClient``. One is created per call if omitted.
    timeout: Per-request timeout in seconds.
    name: Display name override.
  """

  def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0, name: Optional[str] = None):
    self.url = url
    self.client = client
    self.timeout = timeout
    self.name = name or source_name(url)

  async def fetch(self) -> List[RawArticle]:
    headers = {"User-Agent": USER_AGENT, "Accept": "application/rss+xml, application/atom+xml, application/xml"}
    try:
      if self.client is not None:
        response = await self.client.get(self.url, headers=headers, timeout=self.timeout, follow_redirects=True)
      else:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
          response = await client.get(self.url, headers=headers, follow_redirects=True)
      response.raise_for_status()
    except httpx.HTTPError as e:
      raise UpstreamFailureError(f"Feed request failed: {e}", source=self.name, original_error=e) from e

    parsed = feedparser.parse(response.text)
    if parsed.bozo and not parsed.entries:
      raise UpstreamFailureError(f"Unparsable feed: {parsed.bozo_exception}", source=self.name)

    articles: List[RawArticle] = []
    for entry in parsed.entries:
      title = _strip_html(entry.get("title", ""))
      if not title:
        continue
      articles.append(
        RawArticle(
          title=title,
          content=_summary(entry),
          url=entry.get("link", ""),
          source=self.name,
          published_at=_published(entry),
        )
      )
    log_debug(f"NewsSource [{self.name}] parsed {len(articles)} entries", log_level=2)
    return articles
