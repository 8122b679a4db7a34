"""Relationship detection between extracted entities.

Classifies how two entities relate by scanning co-occurrence windows for
keyword triggers. Rules are an ordered table evaluated top-to-bottom;
directed rules require the source to precede the trigger keyword. Pairs
that co-occur without any trigger fall back to a proximity-scored RELATES.

Public API:
    EdgeKind: Enum of detectable edge types
    DetectedRelationship: Dataclass for one detected relationship
    RelationshipRule: One row of the rule table
    RELATIONSHIP_RULES: The ordered rule table
    RelationshipDetector: Configurable detector with detect()/detect_between()
    detect_relationships(text, entities, config) -> list[DetectedRelationship]
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .config import RelationshipDetectionConfig
from .entity_extraction import ExtractedEntity

logger = logging.getLogger(__name__)


class EdgeKind(str, Enum):
    """Edge types a relationship can be classified as."""

    RELATES = "RELATES"
    CAUSES = "CAUSES"
    CORRECTS = "CORRECTS"
    IMPLEMENTS = "IMPLEMENTS"
    DEPENDS_ON = "DEPENDS_ON"
    BLOCKS = "BLOCKS"


@dataclass(frozen=True)
class DetectedRelationship:
    """A typed relationship between two entities.

    Attributes:
        source_text: Source entity surface text
        target_text: Target entity surface text
        edge_type: Classified edge type
        confidence: Confidence score 0.0-1.0
        evidence: Matched trigger text, or a co-occurrence note
        bidirectional: Whether the relationship has no direction
    """

    source_text: str
    target_text: str
    edge_type: EdgeKind
    confidence: float
    evidence: str
    bidirectional: bool


@dataclass(frozen=True)
class RelationshipRule:
    """One row of the relationship rule table.

    Attributes:
        edge_type: Edge type produced when the rule fires
        confidence: Base confidence before the proximity bonus
        bidirectional: Undirected rules skip the source-before-keyword check
        patterns: Trigger regexes, tried in order
    """

    edge_type: EdgeKind
    confidence: float
    bidirectional: bool
    patterns: tuple[re.Pattern[str], ...]


def _rule(edge_type: EdgeKind, confidence: float, bidirectional: bool, *patterns: str) -> RelationshipRule:
    return RelationshipRule(
        edge_type=edge_type,
        confidence=confidence,
        bidirectional=bidirectional,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
    )


RELATIONSHIP_RULES: tuple[RelationshipRule, ...] = (
    _rule(
        EdgeKind.CORRECTS, 0.85, False,
        r"\bfix(?:es|ed)?\b",
        r"\bcorrect(?:s|ed)?\b",
        r"\bresolve(?:s|d)?\b",
        r"\bpatch(?:es|ed)?\b",
        r"\bworkaround\b",
        r"\bhotfix\b",
    ),
    _rule(
        EdgeKind.CAUSES, 0.8, False,
        r"\bcause(?:s|d)?\b",
        r"\blead(?:s)?(?:\s+to)?\b",
        r"\bresult(?:s|ed)?(?:\s+in)?\b",
        r"\btrigger(?:s|ed)?\b",
        r"\binduce(?:s|d)?\b",
        r"\bbreak(?:s)?\b",
    ),
    _rule(
        EdgeKind.IMPLEMENTS, 0.8, False,
        r"\bimplement(?:s|ed)?\b",
        r"\bextend(?:s|ed)?\b",
        r"\binherit(?:s|ed)?\b",
        r"\boverride(?:s|d)?\b",
        r"\bwrap(?:s|ped)?\b",
    ),
    _rule(
        EdgeKind.DEPENDS_ON, 0.75, False,
        r"\bdepend(?:s|ed)?(?:\s+on)?\b",
        r"\brequire(?:s|d)?\b",
        r"\buse(?:s|d)?\b",
        r"\bneeds?\b",
        r"\bimport(?:s|ed)?\b",
        r"\bcall(?:s|ed)?\b",
        r"\binvoke(?:s|d)?\b",
    ),
    _rule(
        EdgeKind.BLOCKS, 0.8, False,
        r"\bblock(?:s|ed)?\b",
        r"\bprevent(?:s|ed)?\b",
        r"\bobstruct(?:s|ed)?\b",
        r"\bstop(?:s|ped)?\b",
        r"\bimpede(?:s|d)?\b",
    ),
    _rule(
        EdgeKind.RELATES, 0.4, True,
        r"\brelate(?:s|d)?(?:\s+to)?\b",
        r"\bconnect(?:s|ed)?(?:\s+to)?\b",
        r"\bassociat(?:es|ed)?(?:\s+with)?\b",
        r"\blinked?(?:\s+to|with)?\b",
        r"\bsimilar(?:\s+to)?\b",
    ),
)

CO_OCCURRENCE_FLOOR = 0.3
CO_OCCURRENCE_CEILING = 0.55


class RelationshipDetector:
    """Detect typed relationships between entity pairs in text.

    Stateless apart from its config: safe to share between threads.

    Args:
        config: Detection settings (defaults when None)
        rules: Ordered rule table (defaults to RELATIONSHIP_RULES)
    """

    def __init__(
        self,
        config: RelationshipDetectionConfig | None = None,
        rules: Iterable[RelationshipRule] | None = None,
    ) -> None:
        self._config = config or RelationshipDetectionConfig()
        self._rules = tuple(rules) if rules is not None else RELATIONSHIP_RULES

    @property
    def config(self) -> RelationshipDetectionConfig:
        """Effective detection settings."""
        return self._config

    def detect(
        self,
        text: str,
        entities: Iterable[ExtractedEntity | str],
    ) -> list[DetectedRelationship]:
        """Detect relationships between every ordered pair of entities.

        Args:
            text: Source text the entities were extracted from
            entities: Entities (or bare surface strings)

        Returns:
            At most one relationship per ordered (source, target) pair,
            the highest-confidence one, all at or above min_confidence.
        """
        if not text:
            return []

        labels = [e if isinstance(e, str) else e.text for e in entities]
        emitted: dict[str, int] = {}
        best: dict[tuple[str, str], DetectedRelationship] = {}

        for i, source in enumerate(labels):
            for j, target in enumerate(labels):
                if i == j or source.lower() == target.lower():
                    continue
                if emitted.get(source, 0) >= self._config.max_relationships_per_entity:
                    break

                rel = self.detect_between(text, source, target)
                if rel is None or rel.confidence < self._config.min_confidence:
                    continue
                emitted[source] = emitted.get(source, 0) + 1

                key = (rel.source_text, rel.target_text)
                existing = best.get(key)
                if existing is None or rel.confidence > existing.confidence:
                    best[key] = rel

        logger.debug("Detected %d relationships among %d entities", len(best), len(labels))
        return list(best.values())

    def detect_between(
        self,
        text: str,
        source_text: str,
        target_text: str,
    ) -> DetectedRelationship | None:
        """Detect the strongest relationship from source to target.

        Args:
            text: Text to scan
            source_text: Source entity surface text
            target_text: Target entity surface text

        Returns:
            The best relationship over all co-occurrence windows, a
            RELATES fallback when they co-occur without any trigger, or
            None when they never co-occur.
        """
        if not text or not source_text or not target_text or source_text == target_text:
            return None

        windows = self._co_occurrence_windows(text, source_text, target_text)
        if not windows:
            return None

        best: DetectedRelationship | None = None
        for window in windows:
            rel = self._classify_window(window, source_text, target_text)
            if rel is not None and (best is None or rel.confidence > best.confidence):
                best = rel

        if best is not None:
            return best

        proximity = _proximity(windows[0], source_text, target_text)
        confidence = max(
            CO_OCCURRENCE_FLOOR,
            min(CO_OCCURRENCE_CEILING, CO_OCCURRENCE_FLOOR + proximity * 0.25),
        )
        return DetectedRelationship(
            source_text=source_text,
            target_text=target_text,
            edge_type=EdgeKind.RELATES,
            confidence=confidence,
            evidence=f"co-occurrence within {self._config.co_occurrence_window_chars} chars",
            bidirectional=True,
        )

    # ── private ───────────────────────────────────────────────

    def _co_occurrence_windows(self, text: str, source: str, target: str) -> list[str]:
        """Windows of ±window/2 chars around each source mention that contain target."""
        half = self._config.co_occurrence_window_chars // 2
        windows: list[str] = []
        idx = 0
        while True:
            pos = text.find(source, idx)
            if pos == -1:
                break
            window = text[max(0, pos - half) : min(len(text), pos + len(source) + half)]
            if target in window:
                windows.append(window)
            idx = pos + 1
        return windows

    def _classify_window(
        self,
        window: str,
        source: str,
        target: str,
    ) -> DetectedRelationship | None:
        """First rule/pattern (in table order) that fires with valid direction."""
        src_idx = window.find(source)
        tgt_idx = window.find(target)
        if src_idx == -1 or tgt_idx == -1:
            return None

        for rule in self._rules:
            for pattern in rule.patterns:
                match = pattern.search(window)
                if match is None:
                    continue
                if not rule.bidirectional and src_idx > match.start():
                    continue

                proximity = _proximity(window, source, target)
                return DetectedRelationship(
                    source_text=source,
                    target_text=target,
                    edge_type=rule.edge_type,
                    confidence=min(1.0, rule.confidence + proximity * 0.1),
                    evidence=match.group(0),
                    bidirectional=rule.bidirectional,
                )
        return None


def _proximity(window: str, source: str, target: str) -> float:
    """1 - |source index - target index| / window length, in [0, 1]."""
    src_idx = window.find(source)
    tgt_idx = window.find(target)
    if src_idx == -1 or tgt_idx == -1 or not window:
        return 0.0
    return max(0.0, 1.0 - abs(src_idx - tgt_idx) / len(window))


def detect_relationships(
    text: str,
    entities: Iterable[ExtractedEntity | str],
    config: RelationshipDetectionConfig | None = None,
) -> list[DetectedRelationship]:
    """Detect relationships with a one-off detector."""
    return RelationshipDetector(config).detect(text, entities)


__all__ = [
    "EdgeKind",
    "DetectedRelationship",
    "RelationshipRule",
    "RELATIONSHIP_RULES",
    "RelationshipDetector",
    "detect_relationships",
]
