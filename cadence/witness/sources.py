# cadence/witness/sources.py
from __future__ import annotations

import random
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

_TITLE_RE = re.compile(r"<title>(?:<!\[CDATA\[)?(.*?)(?:\]\]>)?</title>", re.DOTALL)


def clock_sensation(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"Current ISO date: {now.isoformat()}"


def pick_headline(feed: str, rng: Optional[random.Random] = None) -> Optional[str]:
    """
    Pick one ``<item>`` chunk of an RSS document at random and return its
    title, or the raw chunk when it carries no title.
    """
    rng = rng or random.Random()
    items = [chunk for chunk in feed.split("</item>") if chunk.strip()]
    if not items:
        return None
    chunk = rng.choice(items)
    match = _TITLE_RE.search(chunk.split("<item>")[-1])
    if match and match.group(1).strip():
        return match.group(1).strip()
    return chunk.strip()


class HeadlineSource:
    def __init__(self, url: str, *, client: Optional[httpx.AsyncClient] = None, rng: Optional[random.Random] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        self._rng = rng or random.Random()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self) -> Optional[str]:
        resp = await self._client.get(self.url)
        resp.raise_for_status()
        headline = pick_headline(resp.text, self._rng)
        if headline is None:
            return None
        logger.debug(f"Selected headline: {headline}")
        return f"Random headline from NPR: {headline}"


def script_snippet(path: Path, *, lines: int = 10, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    source = Path(path).read_text(encoding="utf-8").split("\n")
    start = rng.randrange(max(1, len(source) - lines))
    snippet = "\n".join(source[start:start + lines])
    return f"Random script snippet from your own code: {snippet}"


def memory_snippet(journal_path: Path, *, rng: Optional[random.Random] = None) -> Optional[str]:
    """One random journal line, or None before the first output was written."""
    rng = rng or random.Random()
    path = Path(journal_path)
    if not path.exists():
        return None
    memories = [line for line in path.read_text(encoding="utf-8").split("\n") if line.strip()]
    if not memories:
        return None
    return f"Random snippet from your memories: {rng.choice(memories)}"
