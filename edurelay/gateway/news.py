"""Career-news recommendations ranked by the completion upstream."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from supabase import Client

from edurelay.prompts import render_prompt
from edurelay.providers.base import CompletionProvider

logger = logging.getLogger(__name__)

# First JSON array in a reply, optionally inside a ```json fence
_JSON_ARRAY_RE = re.compile(r"\[.*?\]", re.DOTALL)


def fetch_recent_news(sb: Client, limit: int) -> list[dict[str, Any]]:
    """Return the newest ``limit`` career_news rows."""
    result = (
        sb.table("career_news")
        .select("*")
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return result.data or []


def format_news_digest(rows: list[dict[str, Any]]) -> str:
    """Render news rows as the user message the model ranks."""
    return "\n\n".join(
        f"[id: {row.get('id', '')}] {row.get('title', '')} "
        f"({row.get('category', '')}): {row.get('content', '')}"
        for row in rows
    )


def parse_ranked_ids(reply: str) -> list[str]:
    """Extract the ranked ID list from the model's reply.

    Returns an empty list when no JSON array of strings can be found.
    """
    match = _JSON_ARRAY_RE.search(reply or "")
    if not match:
        return []
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return []
    if not isinstance(data, list):
        return []
    return [str(item) for item in data if isinstance(item, (str, int))]


def rank_news(
    rows: list[dict[str, Any]], ranked_ids: list[str], top_n: int
) -> list[dict[str, Any]]:
    """Order rows by the model's ranking, falling back to the newest rows."""
    by_id = {str(row.get("id")): row for row in rows}
    ordered: list[dict[str, Any]] = []
    seen: set[str] = set()
    for news_id in ranked_ids:
        if news_id in by_id and news_id not in seen:
            ordered.append(by_id[news_id])
            seen.add(news_id)
        if len(ordered) == top_n:
            break

    if not ordered:
        return rows[:top_n]
    return ordered


async def recommend_news(
    provider: CompletionProvider,
    sb: Client,
    interests: str | None,
    *,
    limit: int = 20,
    top_n: int = 3,
) -> list[dict[str, Any]]:
    """Fetch recent news and return the top ``top_n`` rows for ``interests``."""
    rows = fetch_recent_news(sb, limit)
    if not rows:
        return []

    system = render_prompt("news_recommendations", interests=interests, top_n=top_n)
    reply = await provider.complete([
        {"role": "system", "content": system},
        {"role": "user", "content": format_news_digest(rows)},
    ])

    ranked_ids = parse_ranked_ids(reply)
    if not ranked_ids:
        logger.info("News ranking reply had no ID array; using newest %d rows", top_n)
    return rank_news(rows, ranked_ids, top_n)
