"""Entity extraction from free-form conversational text.

Extracts candidate graph entities without an LLM, using pattern families
(backtick code, quoted identifiers, PascalCase, camelCase, UPPER_SNAKE,
Title Case phrases, keyword-context words), sentence-level keyword
classification and frequency analysis.

Philosophy:
- Classification tables are data, evaluated top-to-bottom
- All accumulation is local to one extract() call (re-entrant, lock-free)
- Empty or garbage text yields an empty list, never an exception

Public API:
    NodeKind: Enum of extractable node types
    ExtractedEntity: Dataclass for one extracted entity
    EntityExtractor: Configurable extractor with extract(text)
    extract_entities(text, config) -> list[ExtractedEntity]
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import EntityExtractionConfig

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """Node types an extracted entity can be classified as."""

    CONCEPT = "CONCEPT"
    DECISION = "DECISION"
    ERROR = "ERROR"
    CORRECTION = "CORRECTION"
    CODE_ENTITY = "CODE_ENTITY"
    MILESTONE = "MILESTONE"


@dataclass
class ExtractedEntity:
    """A candidate graph entity extracted from text.

    Attributes:
        text: Surface form with backticks/quotes stripped
        normalized_text: Lowercased surface form
        node_type: Classified node type
        frequency: Number of mentions (>= 1)
        confidence: Confidence score 0.0-1.0
        contexts: Up to 3 distinct context snippets
        metadata: Extra data (e.g. which pattern family found it first)
    """

    text: str
    normalized_text: str
    node_type: NodeKind
    frequency: int = 1
    confidence: float = 0.0
    contexts: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


# ── keyword vocabularies ──────────────────────────────────────

DECISION_KEYWORDS = frozenset(
    {
        "decided", "decision", "chose", "choose", "selected", "select",
        "opted", "option", "approach", "strategy", "pick", "picked",
        "prefer", "preferred", "solution", "resolve", "resolved",
    }
)

ERROR_KEYWORDS = frozenset(
    {
        "error", "bug", "crash", "exception", "fail", "failed", "failure",
        "issue", "problem", "broken", "undefined", "null", "nan", "typo",
        "mistake", "wrong", "incorrect", "invalid", "corrupt",
    }
)

CORRECTION_KEYWORDS = frozenset(
    {
        "fix", "fixed", "fixes", "correct", "corrected", "corrects",
        "patch", "patched", "resolved", "resolve", "workaround", "hotfix",
        "refactor", "refactored", "improve", "improved",
    }
)

MILESTONE_KEYWORDS = frozenset(
    {
        "milestone", "phase", "sprint", "release", "version", "v0.",
        "v1.", "v2.", "deploy", "deployment", "launch", "ship", "shipped",
        "complete", "completed", "done", "finish", "finished",
    }
)

# Evaluated in order: on a tied keyword count the earlier entry wins.
SENTENCE_SIGNALS: tuple[tuple[NodeKind, frozenset[str]], ...] = (
    (NodeKind.CORRECTION, CORRECTION_KEYWORDS),
    (NodeKind.ERROR, ERROR_KEYWORDS),
    (NodeKind.DECISION, DECISION_KEYWORDS),
    (NodeKind.MILESTONE, MILESTONE_KEYWORDS),
)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
        "been", "have", "has", "had", "do", "does", "did", "will", "would",
        "could", "should", "may", "might", "it", "its", "this", "that",
        "these", "those", "he", "she", "they", "we", "you", "i", "my", "your",
        "our", "their", "so", "if", "then", "when", "where", "which", "who",
        "what", "how", "not", "no", "yes", "also", "just", "only", "very",
        "can", "than",
    }
)

# Higher rank = more specific; a mention only upgrades a strictly lower rank.
TYPE_RANK: dict[NodeKind, int] = {
    NodeKind.ERROR: 5,
    NodeKind.DECISION: 4,
    NodeKind.CORRECTION: 4,
    NodeKind.MILESTONE: 3,
    NodeKind.CODE_ENTITY: 2,
    NodeKind.CONCEPT: 1,
}

TYPE_BONUS: dict[NodeKind, float] = {
    NodeKind.ERROR: 0.2,
    NodeKind.DECISION: 0.2,
    NodeKind.MILESTONE: 0.15,
    NodeKind.CORRECTION: 0.15,
    NodeKind.CODE_ENTITY: 0.1,
    NodeKind.CONCEPT: 0.05,
}


# ── candidate pattern families ────────────────────────────────


@dataclass(frozen=True)
class CandidateFamily:
    """One pattern family producing raw entity candidates.

    Attributes:
        source: Name recorded in entity metadata
        pattern: Regex whose first non-empty group (or whole match) is the candidate
        kind: Node type assigned to candidates
        follows_signal: If True, the sentence signal overrides ``kind`` when present
        code_only: Family is disabled when include_code_entities is False
    """

    source: str
    pattern: re.Pattern[str]
    kind: NodeKind
    follows_signal: bool = False
    code_only: bool = False


_PASCAL = r"[A-Z][a-z]+(?:[A-Z][a-z]+)+"
_CAMEL = r"[a-z][a-zA-Z0-9]+(?:[A-Z][a-zA-Z0-9]+)+"

PASCAL_CASE_RE = re.compile(rf"\b{_PASCAL}\b")
CAMEL_CASE_RE = re.compile(rf"\b{_CAMEL}\b")
CODE_IDENTIFIER_RE = re.compile(rf"^(?:{_PASCAL}|{_CAMEL})$")

CANDIDATE_FAMILIES: tuple[CandidateFamily, ...] = (
    CandidateFamily(
        "backtick", re.compile(r"`([^`\n]{2,60})`"), NodeKind.CODE_ENTITY,
        follows_signal=True, code_only=True,
    ),
    CandidateFamily(
        "quoted",
        re.compile(r"\"([A-Za-z][A-Za-z0-9_\- ]{1,40})\"|'([A-Za-z][A-Za-z0-9_\- ]{1,40})'"),
        NodeKind.CONCEPT,
        follows_signal=True,
    ),
    CandidateFamily("pascal", PASCAL_CASE_RE, NodeKind.CODE_ENTITY, code_only=True),
    CandidateFamily("camel", CAMEL_CASE_RE, NodeKind.CODE_ENTITY, code_only=True),
    CandidateFamily(
        "upper_snake", re.compile(r"\b[A-Z][A-Z0-9_]{2,}\b"), NodeKind.CODE_ENTITY, code_only=True
    ),
    CandidateFamily(
        "title_case",
        re.compile(r"\b([A-Z][a-z]{2,}(?:\s+[A-Z][a-z]{2,}){0,2})\b"),
        NodeKind.CONCEPT,
        follows_signal=True,
    ),
)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?\n])\s+|\n{2,}")
_NON_WORD_RE = re.compile(r"\W+")
_KEYWORD_CLEAN_RE = re.compile(r"[^a-zA-Z0-9_\-]")
_QUOTES_RE = re.compile(r"[`'\"]")
_WHITESPACE_RE = re.compile(r"\s+")


def _candidate_text(match: re.Match[str]) -> str:
    for group in match.groups():
        if group:
            return group
    return match.group(0)


@dataclass
class _EntityHit:
    """Mutable per-call accumulator for one normalized key."""

    count: int
    kind: NodeKind
    contexts: dict[str, None]
    metadata: dict[str, Any]


class EntityExtractor:
    """Extract ranked, deduplicated entities from raw text.

    The extractor holds only its config; every call to extract() builds
    fresh local state, so one instance can serve concurrent callers.

    Args:
        config: Extraction settings (defaults when None)
    """

    def __init__(self, config: EntityExtractionConfig | None = None) -> None:
        self._config = config or EntityExtractionConfig()

    @property
    def config(self) -> EntityExtractionConfig:
        """Effective extraction settings."""
        return self._config

    def extract(self, text: str) -> list[ExtractedEntity]:
        """Extract entities from text.

        Args:
            text: Raw conversational text

        Returns:
            Entities sorted by confidence * ln(1 + frequency), descending,
            truncated to max_entities. Empty list for empty text.
        """
        if not text or not text.strip():
            return []

        hits: dict[str, _EntityHit] = {}
        for sentence in split_sentences(text):
            self._extract_from_sentence(sentence, text, hits)

        entities: list[ExtractedEntity] = []
        for key, hit in hits.items():
            if hit.count < self._config.min_frequency:
                continue
            confidence = calculate_confidence(key, hit.count, hit.kind, text)
            if confidence < self._config.min_confidence:
                continue
            entities.append(
                ExtractedEntity(
                    text=key,
                    normalized_text=key.lower(),
                    node_type=hit.kind,
                    frequency=hit.count,
                    confidence=confidence,
                    contexts=list(hit.contexts)[:3],
                    metadata=dict(hit.metadata),
                )
            )

        entities.sort(key=lambda e: e.confidence * math.log1p(e.frequency), reverse=True)
        result = entities[: self._config.max_entities]
        logger.debug(
            "Extracted %d entities (%d candidates) from %d chars",
            len(result),
            len(hits),
            len(text),
        )
        return result

    # ── private ───────────────────────────────────────────────

    def _extract_from_sentence(
        self,
        sentence: str,
        full_text: str,
        hits: dict[str, _EntityHit],
    ) -> None:
        signal = classify_sentence(sentence)

        def add_hit(raw: str, kind: NodeKind, source: str) -> None:
            key = normalize_surface(raw)
            if len(key) < 2 or key.lower() in STOP_WORDS:
                return

            context = self._context_for(full_text, raw)
            hit = hits.get(key)
            if hit is None:
                contexts = {context: None} if context else {}
                hits[key] = _EntityHit(count=1, kind=kind, contexts=contexts, metadata={"source": source})
                return

            hit.count += 1
            if context:
                hit.contexts.setdefault(context, None)
            if TYPE_RANK[kind] > TYPE_RANK[hit.kind]:
                hit.kind = kind

        for family in CANDIDATE_FAMILIES:
            if family.code_only and not self._config.include_code_entities:
                continue
            kind = signal if (family.follows_signal and signal is not None) else family.kind
            for match in family.pattern.finditer(sentence):
                raw = _candidate_text(match)
                if family.source == "title_case" and raw.lower() in STOP_WORDS:
                    continue
                add_hit(raw, kind, family.source)

        if signal is None:
            return
        for word in sentence.split():
            clean = _KEYWORD_CLEAN_RE.sub("", word)
            if len(clean) < 3 or clean.lower() in STOP_WORDS:
                continue
            add_hit(clean, signal, "keyword_context")

    def _context_for(self, text: str, term: str) -> str | None:
        """Snippet of ±context_window_chars/2 around the first occurrence of term."""
        idx = text.find(term)
        if idx == -1:
            return None
        half = self._config.context_window_chars // 2
        start = max(0, idx - half)
        end = min(len(text), idx + len(term) + half)
        return _WHITESPACE_RE.sub(" ", text[start:end]).strip() or None


def split_sentences(text: str) -> list[str]:
    """Split text on sentence punctuation, newlines and blank lines."""
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s and s.strip()]


def classify_sentence(sentence: str) -> NodeKind | None:
    """Return the dominant keyword signal of a sentence, or None.

    Counts distinct words hitting each vocabulary. Ties go to the
    earlier entry of SENTENCE_SIGNALS (correction > error > decision
    > milestone).
    """
    words = set(_NON_WORD_RE.split(sentence.lower()))
    scores = [(kind, len(words & vocabulary)) for kind, vocabulary in SENTENCE_SIGNALS]
    best = max(score for _, score in scores)
    if best == 0:
        return None
    for kind, score in scores:
        if score == best:
            return kind
    return None


def normalize_surface(raw: str) -> str:
    """Strip backticks and quotes, then surrounding whitespace."""
    return _QUOTES_RE.sub("", raw).strip()


def calculate_confidence(text: str, frequency: int, kind: NodeKind, full_text: str) -> float:
    """Score an entity in [0, 1].

    Formula: min(1, 0.3*length + 0.5*frequency + code_boost + type_bonus)
    where length = min(1, len/20), frequency = min(1, ln(1+f)/ln(11)),
    code_boost is 0.3 for backtick-quoted text, 0.2 for Pascal/camel
    identifiers, else 0.

    Args:
        text: Normalized surface text
        frequency: Mention count
        kind: Classified node type
        full_text: Source text (checked for backtick quoting)

    Returns:
        Confidence score 0.0-1.0
    """
    length_score = min(1.0, len(text) / 20)
    freq_score = min(1.0, math.log1p(frequency) / math.log1p(10))

    if f"`{text}`" in full_text:
        code_boost = 0.3
    elif CODE_IDENTIFIER_RE.match(text):
        code_boost = 0.2
    else:
        code_boost = 0.0

    raw = length_score * 0.3 + freq_score * 0.5 + code_boost + TYPE_BONUS[kind]
    return max(0.0, min(1.0, raw))


def extract_entities(
    text: str,
    config: EntityExtractionConfig | None = None,
) -> list[ExtractedEntity]:
    """Extract entities from text with a one-off extractor."""
    return EntityExtractor(config).extract(text)


__all__ = [
    "NodeKind",
    "ExtractedEntity",
    "CandidateFamily",
    "CANDIDATE_FAMILIES",
    "SENTENCE_SIGNALS",
    "STOP_WORDS",
    "TYPE_RANK",
    "TYPE_BONUS",
    "EntityExtractor",
    "extract_entities",
    "split_sentences",
    "classify_sentence",
    "normalize_surface",
    "calculate_confidence",
]
