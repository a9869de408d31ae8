"""
Detection of "no answer found" replies.

A model may decline to answer even when sources were retrieved; such
replies must not carry citations. Detection is heuristic, so the rule is
pluggable:

- ``clause``: the reply contains the first clause of the fallback
  message (the text before its first period). Tolerant to the model
  appending extra sentences; misses paraphrases.
- ``exact``: the whole reply equals the fallback message. No false
  positives; misses any rewording.
- ``prefix``: the reply starts with the first clause.
- ``semantic``: embedding cosine similarity against the fallback message.
  Catches paraphrases at the cost of an extra embedding call per reply.

All rules ignore markup tags, letter case and runs of whitespace.
"""

import logging
import math
import re
from typing import Protocol

from app.core.errors import UpstreamError
from app.services.search import Embedder

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Strip angle-bracket tags, lowercase and collapse whitespace."""
    return _SPACE_RE.sub(" ", _TAG_RE.sub("", text)).strip().lower()


def first_clause(message: str) -> str:
    return normalize(message.split(".", 1)[0])


class FallbackStrategy(Protocol):
    async def is_fallback(self, reply: str) -> bool: ...


class ClauseMatch:
    def __init__(self, fallback_message: str) -> None:
        self.clause = first_clause(fallback_message)

    async def is_fallback(self, reply: str) -> bool:
        return bool(self.clause) and self.clause in normalize(reply)


class ExactMatch:
    def __init__(self, fallback_message: str) -> None:
        self.expected = normalize(fallback_message)

    async def is_fallback(self, reply: str) -> bool:
        return normalize(reply) == self.expected


class PrefixMatch:
    def __init__(self, fallback_message: str) -> None:
        self.clause = first_clause(fallback_message)

    async def is_fallback(self, reply: str) -> bool:
        return bool(self.clause) and normalize(reply).startswith(self.clause)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class SemanticMatch:
    """Embedding-similarity rule; degrades to ClauseMatch on embedding errors."""

    def __init__(self, fallback_message: str, embedder: Embedder, threshold: float) -> None:
        self.fallback_message = fallback_message
        self.embedder = embedder
        self.threshold = threshold
        self._reference: list[float] | None = None
        self._clause = ClauseMatch(fallback_message)

    async def is_fallback(self, reply: str) -> bool:
        text = normalize(reply)
        if not text:
            return False
        try:
            if self._reference is None:
                self._reference = await self.embedder.embed_text(normalize(self.fallback_message))
            vector = await self.embedder.embed_text(text)
        except UpstreamError as exc:
            logger.warning("Fallback similarity check failed, using clause match: %s", exc)
            return await self._clause.is_fallback(reply)

        score = cosine_similarity(vector, self._reference)
        logger.debug("Fallback similarity %.3f (threshold %.2f)", score, self.threshold)
        return score >= self.threshold


def build_fallback_strategy(
    name: str,
    fallback_message: str,
    embedder: Embedder | None = None,
    threshold: float = 0.85,
) -> FallbackStrategy:
    if name == "clause":
        return ClauseMatch(fallback_message)
    if name == "exact":
        return ExactMatch(fallback_message)
    if name == "prefix":
        return PrefixMatch(fallback_message)
    if name == "semantic":
        if embedder is None:
            raise ValueError("semantic fallback detection needs an embedder")
        return SemanticMatch(fallback_message, embedder, threshold)
    raise ValueError(f"unknown fallback strategy: {name}")
