"""
Citation rendering for retrieved sources.

Citations come from the ranked search results, not from the reply text.
"""

from html import escape

from app.services.search import RetrievedDocument


def unique_urls(documents: list[RetrievedDocument]) -> list[str]:
    """Distinct non-empty URLs in first-seen order, compared case-insensitively."""
    seen: set[str] = set()
    urls = []
    for doc in documents:
        key = doc.url.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        urls.append(doc.url.strip())
    return urls


def render_citation(url: str, number: int) -> str:
    return f'<a href="{escape(url, quote=True)}" target="_blank">Citation {number}</a>'


def build_citations(documents: list[RetrievedDocument], top_k: int) -> list[str]:
    """Numbered anchors for at most top_k distinct source URLs."""
    urls = unique_urls(documents)[:top_k]
    return [render_citation(url, i + 1) for i, url in enumerate(urls)]
