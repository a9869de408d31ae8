"""
Source budgeting for the system prompt.

Two stages bound the text sent to the completion service:
1. Each document is capped at a character limit.
2. The joined source block is capped so the estimated prompt size
   (characters / 4) stays inside the token budget.

Both stages cut at the last sentence end, newline or space inside the
window and mark the cut with an ellipsis.
"""

import logging
from dataclasses import dataclass

from app.services.search import RetrievedDocument

logger = logging.getLogger(__name__)

ELLIPSIS = " [...]"
SOURCE_SEPARATOR = "\n\n---\n\n"
CHARS_PER_TOKEN = 4
_BOUNDARIES = (".", "\n", " ")


def truncate_at_boundary(text: str, limit: int) -> str:
    """
    Shorten text to at most `limit` characters plus the ellipsis marker.

    Text that already fits is returned unchanged. Otherwise the cut lands
    just after the last boundary character in the window, or hard at
    `limit` when the window has none.
    """
    if len(text) <= limit:
        return text

    window = text[:limit]
    last = max(window.rfind(b) for b in _BOUNDARIES)
    cut = window[: last + 1].strip() if last >= 0 else ""
    if not cut:
        cut = window
    return cut + ELLIPSIS


def format_source(url: str, content: str) -> str:
    return f"Source: {url}\n{content}"


def estimate_tokens(text_length: int) -> float:
    return text_length / CHARS_PER_TOKEN


@dataclass(frozen=True)
class BudgetedSources:
    text: str
    estimated_tokens: float
    truncated: bool


class SourceBudgeter:
    """Applies the per-document cap, then the aggregate token budget."""

    def __init__(self, max_source_characters: int, max_input_tokens: int) -> None:
        self.max_source_characters = max_source_characters
        self.max_input_tokens = max_input_tokens

    def budget(self, documents: list[RetrievedDocument], prefix_length: int) -> BudgetedSources:
        blocks = [
            format_source(doc.url, truncate_at_boundary(doc.content, self.max_source_characters))
            for doc in documents
        ]
        sources = SOURCE_SEPARATOR.join(blocks)

        estimate = estimate_tokens(prefix_length + len(sources))
        if estimate <= self.max_input_tokens:
            return BudgetedSources(text=sources, estimated_tokens=estimate, truncated=False)

        allowed = self.max_input_tokens * CHARS_PER_TOKEN - prefix_length
        if allowed <= 0:
            logger.warning(
                "Prompt prefix (%d chars) exhausts the %d token budget; dropping all sources",
                prefix_length,
                self.max_input_tokens,
            )
            sources = ""
        else:
            sources = truncate_at_boundary(sources, allowed)
            logger.info(
                "Sources truncated to fit %d token budget (estimate was %.0f)",
                self.max_input_tokens,
                estimate,
            )
        return BudgetedSources(
            text=sources,
            estimated_tokens=estimate_tokens(prefix_length + len(sources)),
            truncated=True,
        )
