"""Configuration objects for extraction, detection, embedding and search.

Philosophy:
- Plain dataclasses with documented defaults, passed by constructor injection
- Out-of-range numbers are clamped into range and the clamp is logged
- Values of the wrong type raise ConfigurationError
- Partial dicts (camelCase or snake_case keys) load via from_mapping()

Public API:
    EntityExtractionConfig: Entity extraction thresholds and limits
    RelationshipDetectionConfig: Relationship detection thresholds and window
    EmbeddingConfig: Embedding model, batching, cache and timeout settings
    AutoGrafizerConfig: Grafization pipeline settings
    SearchWeights: Semantic/structural blend for hybrid search
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def clamp_number(
    owner: str,
    name: str,
    value: Any,
    low: float | None = None,
    high: float | None = None,
    integer: bool = False,
) -> Any:
    """Validate a numeric option and clamp it into [low, high].

    Args:
        owner: Config class name (for messages)
        name: Field name (for messages)
        value: Raw value
        low: Inclusive lower bound, or None
        high: Inclusive upper bound, or None
        integer: Whether the option must be integral

    Returns:
        The value, clamped into range.

    Raises:
        ConfigurationError: If the value is not a finite number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ConfigurationError(f"{owner}.{name} must be a number, got {value!r}")
    if integer:
        if math.isinf(value) or not float(value).is_integer():
            raise ConfigurationError(f"{owner}.{name} must be an integer, got {value!r}")
        value = int(value)

    clamped = value
    if low is not None and clamped < low:
        clamped = low
    if high is not None and clamped > high:
        clamped = high
    if clamped != value:
        logger.warning("%s.%s=%r is out of range, clamped to %r", owner, name, value, clamped)
    return clamped


def require_bool(owner: str, name: str, value: Any) -> bool:
    """Validate a flag option; strings such as "false" are rejected."""
    if not isinstance(value, bool):
        raise ConfigurationError(f"{owner}.{name} must be a bool, got {value!r}")
    return value


class _MappingLoader:
    """Mixin giving config dataclasses a tolerant from_mapping() constructor."""

    _aliases: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None = None):
        """Build a config from a partial dict, ignoring unknown keys.

        Args:
            mapping: Option names (snake_case or camelCase) to values

        Returns:
            A validated config instance.
        """
        known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        kwargs: dict[str, Any] = {}
        for key, value in (mapping or {}).items():
            name = _snake_case(key)
            name = cls._aliases.get(name, name)
            if name not in known:
                logger.warning("Ignoring unknown %s option %r", cls.__name__, key)
                continue
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class EntityExtractionConfig(_MappingLoader):
    """Settings for EntityExtractor.

    Attributes:
        min_frequency: Minimum mentions for an entity to be kept (>= 1)
        min_confidence: Minimum confidence for an entity to be kept (0.0-1.0)
        max_entities: Cap on entities returned (>= 0)
        include_code_entities: Enable backtick/PascalCase/camelCase/UPPER_SNAKE families
        context_window_chars: Width of each captured context snippet (>= 0)
    """

    min_frequency: int = 1
    min_confidence: float = 0.25
    max_entities: int = 50
    include_code_entities: bool = True
    context_window_chars: int = 120

    def __post_init__(self) -> None:
        owner = type(self).__name__
        self.min_frequency = clamp_number(owner, "min_frequency", self.min_frequency, 1, integer=True)
        self.min_confidence = clamp_number(owner, "min_confidence", self.min_confidence, 0.0, 1.0)
        self.max_entities = clamp_number(owner, "max_entities", self.max_entities, 0, integer=True)
        self.context_window_chars = clamp_number(
            owner, "context_window_chars", self.context_window_chars, 0, integer=True
        )
        self.include_code_entities = require_bool(
            owner, "include_code_entities", self.include_code_entities
        )


@dataclass
class RelationshipDetectionConfig(_MappingLoader):
    """Settings for RelationshipDetector.

    Attributes:
        min_confidence: Relationships below this confidence are dropped (0.0-1.0)
        max_relationships_per_entity: Cap on relationships emitted per source (>= 0)
        co_occurrence_window_chars: Total width of a co-occurrence window (>= 2)
    """

    min_confidence: float = 0.3
    max_relationships_per_entity: int = 5
    co_occurrence_window_chars: int = 200

    def __post_init__(self) -> None:
        owner = type(self).__name__
        self.min_confidence = clamp_number(owner, "min_confidence", self.min_confidence, 0.0, 1.0)
        self.max_relationships_per_entity = clamp_number(
            owner, "max_relationships_per_entity", self.max_relationships_per_entity, 0, integer=True
        )
        self.co_occurrence_window_chars = clamp_number(
            owner, "co_occurrence_window_chars", self.co_occurrence_window_chars, 2, integer=True
        )


@dataclass
class EmbeddingConfig(_MappingLoader):
    """Settings for EmbeddingService.

    Attributes:
        model_name: sentence-transformers model name for the default backend
        dimension: Expected vector length, or None to accept any length
        normalize: Ask the default backend for unit-length vectors
        batch_size: Items embedded concurrently per batch (>= 1)
        max_sequence_length: Characters kept after text normalization (>= 1)
        cache_size: Max cached embeddings; 0 disables the cache
        timeout_seconds: Per-call timeout, or None to wait indefinitely
    """

    model_name: str = "all-MiniLM-L6-v2"
    dimension: int | None = 384
    normalize: bool = True
    batch_size: int = 32
    max_sequence_length: int = 512
    cache_size: int = 10_000
    timeout_seconds: float | None = 30.0

    def __post_init__(self) -> None:
        owner = type(self).__name__
        if not isinstance(self.model_name, str) or not self.model_name.strip():
            raise ConfigurationError(f"{owner}.model_name must be a non-empty string")
        if self.dimension is not None:
            self.dimension = clamp_number(owner, "dimension", self.dimension, 1, integer=True)
        self.normalize = require_bool(owner, "normalize", self.normalize)
        self.batch_size = clamp_number(owner, "batch_size", self.batch_size, 1, integer=True)
        self.max_sequence_length = clamp_number(
            owner, "max_sequence_length", self.max_sequence_length, 1, integer=True
        )
        self.cache_size = clamp_number(owner, "cache_size", self.cache_size, 0, integer=True)
        if self.timeout_seconds is not None:
            self.timeout_seconds = clamp_number(
                owner, "timeout_seconds", self.timeout_seconds, 0.001
            )


@dataclass
class AutoGrafizerConfig(_MappingLoader):
    """Settings for AutoGrafizer.

    Attributes:
        entity: Entity extraction settings
        relationship: Relationship detection settings
        merge_semantic_duplicates: Merge entities whose embeddings are near-identical
        semantic_merge_threshold: Cosine similarity at or above which entities merge
        filter_orphan_edges: Drop edges whose endpoints are not among the nodes
    """

    _aliases: ClassVar[dict[str, str]] = {
        "entity_config": "entity",
        "relationship_config": "relationship",
    }

    entity: EntityExtractionConfig = field(default_factory=EntityExtractionConfig)
    relationship: RelationshipDetectionConfig = field(default_factory=RelationshipDetectionConfig)
    merge_semantic_duplicates: bool = False
    semantic_merge_threshold: float = 0.92
    filter_orphan_edges: bool = True

    def __post_init__(self) -> None:
        owner = type(self).__name__
        if self.entity is None:
            self.entity = EntityExtractionConfig()
        elif isinstance(self.entity, Mapping):
            self.entity = EntityExtractionConfig.from_mapping(self.entity)
        if self.relationship is None:
            self.relationship = RelationshipDetectionConfig()
        elif isinstance(self.relationship, Mapping):
            self.relationship = RelationshipDetectionConfig.from_mapping(self.relationship)
        if not isinstance(self.entity, EntityExtractionConfig):
            raise ConfigurationError(
                f"{owner}.entity must be an EntityExtractionConfig or mapping, got {self.entity!r}"
            )
        if not isinstance(self.relationship, RelationshipDetectionConfig):
            raise ConfigurationError(
                f"{owner}.relationship must be a RelationshipDetectionConfig or mapping, "
                f"got {self.relationship!r}"
            )
        self.merge_semantic_duplicates = require_bool(
            owner, "merge_semantic_duplicates", self.merge_semantic_duplicates
        )
        self.semantic_merge_threshold = clamp_number(
            owner, "semantic_merge_threshold", self.semantic_merge_threshold, 0.0, 1.0
        )
        self.filter_orphan_edges = require_bool(
            owner, "filter_orphan_edges", self.filter_orphan_edges
        )


@dataclass
class SearchWeights(_MappingLoader):
    """Blend of semantic and structural scores in hybrid search (each 0.0-1.0)."""

    semantic: float = 0.7
    structural: float = 0.3

    def __post_init__(self) -> None:
        owner = type(self).__name__
        self.semantic = clamp_number(owner, "semantic", self.semantic, 0.0, 1.0)
        self.structural = clamp_number(owner, "structural", self.structural, 0.0, 1.0)


__all__ = [
    "EntityExtractionConfig",
    "RelationshipDetectionConfig",
    "EmbeddingConfig",
    "AutoGrafizerConfig",
    "SearchWeights",
    "clamp_number",
    "require_bool",
]
