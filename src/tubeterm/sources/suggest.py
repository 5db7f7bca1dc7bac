"""Search-as-you-type suggestions from YouTube's autocomplete endpoint."""

import json
import logging

import httpx

logger = logging.getLogger(__name__)

SUGGEST_URL = "https://suggestqueries.google.com/complete/search"
JSONP_PREFIX = "window.google.ac.h("
MAX_SUGGESTIONS = 6
DEFAULT_TIMEOUT = 5.0


def parse_suggestions(text: str) -> list[str]:
    """Pull suggestion strings out of the JSONP autocomplete response.

    The payload looks like window.google.ac.h(["query", [["text", 0, [...]], ...], {...}]).
    Anything unexpected yields an empty list.
    """
    body = text.strip()
    if body.startswith(JSONP_PREFIX):
        body = body[len(JSONP_PREFIX):]
    if body.endswith(")"):
        body = body[:-1]
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.debug("Unparseable suggestion response: %r", text[:200])
        return []
    if not isinstance(data, list) or len(data) < 2 or not isinstance(data[1], list):
        return []

    suggestions = []
    for entry in data[1]:
        if isinstance(entry, list) and entry and isinstance(entry[0], str):
            suggestions.append(entry[0])
        if len(suggestions) == MAX_SUGGESTIONS:
            break
    return suggestions


class SuggestionSource:
    """Fetches query completions over HTTP.

    Usage:
        suggestions = SuggestionSource()
        suggestions.suggest("lofi")  # ["lofi hip hop", "lofi girl", ...]
        suggestions.close()
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.Client | None = None):
        self._client = client or httpx.Client(timeout=timeout)

    def close(self):
        self._client.close()

    def suggest(self, query: str) -> list[str]:
        """Return up to MAX_SUGGESTIONS completions, or [] on any failure."""
        if not query.strip():
            return []
        try:
            resp = self._client.get(
                SUGGEST_URL, params={"client": "youtube", "ds": "yt", "q": query},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Suggestion request failed: %s", e)
            return []
        return parse_suggestions(resp.text)
