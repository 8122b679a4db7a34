"""Tests for configuration dataclasses."""

from __future__ import annotations

import logging

import pytest

from memgraft.config import (
    AutoGrafizerConfig,
    EmbeddingConfig,
    EntityExtractionConfig,
    RelationshipDetectionConfig,
    SearchWeights,
)
from memgraft.exceptions import ConfigurationError


class TestDefaults:
    """Documented defaults."""

    def test_entity_defaults(self):
        """Entity extraction defaults match the documented values."""
        config = EntityExtractionConfig()
        assert config.min_frequency == 1
        assert config.min_confidence == 0.25
        assert config.max_entities == 50
        assert config.include_code_entities is True
        assert config.context_window_chars == 120

    def test_relationship_defaults(self):
        """Relationship detection defaults match the documented values."""
        config = RelationshipDetectionConfig()
        assert config.min_confidence == 0.3
        assert config.max_relationships_per_entity == 5
        assert config.co_occurrence_window_chars == 200

    def test_embedding_defaults(self):
        """Embedding defaults match the documented values."""
        config = EmbeddingConfig()
        assert config.model_name == "all-MiniLM-L6-v2"
        assert config.dimension == 384
        assert config.batch_size == 32
        assert config.max_sequence_length == 512

    def test_grafizer_defaults(self):
        """Grafizer defaults nest fresh sub-configs."""
        config = AutoGrafizerConfig()
        assert config.merge_semantic_duplicates is False
        assert config.semantic_merge_threshold == 0.92
        assert config.filter_orphan_edges is True
        assert isinstance(config.entity, EntityExtractionConfig)
        assert isinstance(config.relationship, RelationshipDetectionConfig)

    def test_search_weights_defaults(self):
        """Hybrid search blends 0.7 semantic with 0.3 structural."""
        weights = SearchWeights()
        assert (weights.semantic, weights.structural) == (0.7, 0.3)


class TestValidation:
    """Clamping and type errors."""

    def test_probability_clamped(self, caplog):
        """Out-of-range confidence is clamped and the clamp is logged."""
        with caplog.at_level(logging.WARNING, logger="memgraft.config"):
            config = EntityExtractionConfig(min_confidence=1.7)
        assert config.min_confidence == 1.0
        assert "min_confidence" in caplog.text

    def test_count_clamped_to_minimum(self):
        """Counts below their minimum are raised to it."""
        assert EntityExtractionConfig(min_frequency=0).min_frequency == 1
        assert RelationshipDetectionConfig(co_occurrence_window_chars=0).co_occurrence_window_chars == 2
        assert EmbeddingConfig(batch_size=-3).batch_size == 1

    def test_wrong_type_raises(self):
        """Non-numeric values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            EntityExtractionConfig(max_entities="many")  # type: ignore[arg-type]

    def test_nan_raises(self):
        """NaN is rejected rather than clamped."""
        with pytest.raises(ConfigurationError):
            SearchWeights(semantic=float("nan"))

    def test_non_integer_count_raises(self):
        """Fractional counts are rejected."""
        with pytest.raises(ConfigurationError):
            RelationshipDetectionConfig(max_relationships_per_entity=2.5)

    def test_string_flags_raise(self):
        """Flags given as strings such as "false" are rejected, not coerced."""
        with pytest.raises(ConfigurationError):
            AutoGrafizerConfig(merge_semantic_duplicates="false")  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            AutoGrafizerConfig(filter_orphan_edges="no")  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            EmbeddingConfig(normalize=1)  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            EntityExtractionConfig(include_code_entities="yes")  # type: ignore[arg-type]

    def test_sub_config_type_checked(self):
        """entity/relationship must be configs or mappings."""
        with pytest.raises(ConfigurationError):
            AutoGrafizerConfig(entity=RelationshipDetectionConfig())  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            AutoGrafizerConfig(relationship="strict")  # type: ignore[arg-type]

    def test_configuration_error_is_value_error(self):
        """ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            EmbeddingConfig(model_name="")

    def test_dimension_none_allowed(self):
        """dimension=None disables the dimension check."""
        assert EmbeddingConfig(dimension=None).dimension is None


class TestFromMapping:
    """Loading configs from partial dicts."""

    def test_camel_case_keys(self):
        """camelCase keys map onto snake_case fields."""
        config = EntityExtractionConfig.from_mapping({"minFrequency": 2, "maxEntities": 10})
        assert config.min_frequency == 2
        assert config.max_entities == 10
        assert config.min_confidence == 0.25

    def test_unknown_keys_ignored(self, caplog):
        """Unknown keys are warned about and ignored."""
        with caplog.at_level(logging.WARNING, logger="memgraft.config"):
            config = RelationshipDetectionConfig.from_mapping({"bogus": 1, "minConfidence": 0.5})
        assert config.min_confidence == 0.5
        assert "bogus" in caplog.text

    def test_nested_grafizer_config(self):
        """Nested mappings and *_config aliases become sub-configs."""
        config = AutoGrafizerConfig.from_mapping(
            {
                "entityConfig": {"minConfidence": 0.5},
                "relationship": {"coOccurrenceWindowChars": 80},
                "mergeSemanticDuplicates": True,
            }
        )
        assert config.entity.min_confidence == 0.5
        assert config.relationship.co_occurrence_window_chars == 80
        assert config.merge_semantic_duplicates is True

    def test_none_mapping_gives_defaults(self):
        """from_mapping(None) returns defaults."""
        assert EmbeddingConfig.from_mapping(None) == EmbeddingConfig()

    def test_string_flag_from_mapping_raises(self):
        """A string flag in a mapping raises instead of enabling merge."""
        with pytest.raises(ConfigurationError):
            AutoGrafizerConfig.from_mapping({"mergeSemanticDuplicates": "false"})
