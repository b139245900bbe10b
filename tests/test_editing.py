"""Tests for variant document edits persisted through the repository."""

import json
from datetime import datetime

import pytest

from growthlab.db import repo
from growthlab.lab.editing import (
    assign_variant_image,
    get_variants_state,
    record_ai_insight,
    record_variant_metric,
)


@pytest.fixture
def legacy_test_id(session, make_test):
    """A test stored in the oldest shape: JSON string blob plus flat image list."""
    entity = make_test(
        id=0,
        test_type="CTR",
        variants=json.dumps({"A": {"ctr": "2,0"}, "B": {"ctr": "2,5"}}),
        images=["a.jpg", "b.jpg"],
        target_multiplier=1.2,
    )
    created = repo.create_test(session, entity)
    session.commit()
    return created.id


class TestGetVariantsState:
    """get_variants_state."""

    def test_migrates_legacy_shape(self, session, legacy_test_id):
        """Legacy images land in per-variant lists and metrics are computed."""
        state = get_variants_state(session, legacy_test_id)
        assert state.variants["A"]["assets"]["images"] == ["a.jpg"]
        assert state.variants["assets"]["images"] == {"A": "a.jpg", "B": "b.jpg"}
        assert state.metrics.control_value == pytest.approx(2.0)
        assert state.metrics.leader.leader_variant == "B"
        assert state.metrics.goal1_progress == 100

    def test_read_does_not_write_back(self, session, legacy_test_id):
        get_variants_state(session, legacy_test_id)
        stored = repo.get_test(session, legacy_test_id)
        assert isinstance(stored.variants, str)

    def test_missing_test(self, session):
        with pytest.raises(ValueError, match="Test not found"):
            get_variants_state(session, 999)


class TestAssignVariantImage:
    """assign_variant_image."""

    def test_persists_canonical_document(self, session, legacy_test_id):
        """Writing stores the normalized dict, not the legacy string."""
        assign_variant_image(session, legacy_test_id, "C", "c.jpg")

        stored = repo.get_test(session, legacy_test_id)
        assert stored.variants["C"]["assets"]["images"] == ["c.jpg"]
        assert stored.variants["assets"]["images"] == {"A": "a.jpg", "B": "b.jpg", "C": "c.jpg"}

    def test_clearing_image(self, session, legacy_test_id):
        state = assign_variant_image(session, legacy_test_id, "B", "")
        assert state.variants["B"]["assets"]["images"] == []
        assert "B" not in state.variants["assets"]["images"]

    def test_cleared_image_reseeded_while_legacy_list_remains(self, session, legacy_test_id):
        """The flat image list seeds any variant that reads back empty."""
        assign_variant_image(session, legacy_test_id, "B", "")
        state = get_variants_state(session, legacy_test_id)
        assert state.variants["B"]["assets"]["images"] == ["b.jpg"]

    def test_bad_key(self, session, legacy_test_id):
        with pytest.raises(ValueError):
            assign_variant_image(session, legacy_test_id, "Z", "z.jpg")


class TestRecordVariantMetric:
    """record_variant_metric."""

    def test_metric_updates_leader(self, session, legacy_test_id):
        state = record_variant_metric(session, legacy_test_id, "D", "ctr", "3,1%")
        assert state.metrics.leader.leader_variant == "D"
        assert state.metrics.prepared_variants == 2
        assert repo.get_test(session, legacy_test_id).variants["D"]["ctr"] == "3,1%"

    def test_clear_metric(self, session, legacy_test_id):
        state = record_variant_metric(session, legacy_test_id, "B", "ctr", None)
        assert "ctr" not in state.variants["B"]
        assert state.metrics.leader.leader_variant is None


class TestRecordAiInsight:
    """record_ai_insight."""

    def test_history_grows(self, session, legacy_test_id):
        first = datetime(2025, 5, 1, 8, 0)
        record_ai_insight(session, legacy_test_id, "first take", now=first)
        state = record_ai_insight(session, legacy_test_id, {"items": [1]}, now=first)

        ai = state.variants["ai"]
        assert ai["latest"] == {"items": [1]}
        assert ai["history"] == [{"timestamp": "2025-05-01 08:00", "value": "first take"}]

        stored = repo.get_test(session, legacy_test_id).variants
        assert json.loads(stored["insight"]) == {"items": [1]}
