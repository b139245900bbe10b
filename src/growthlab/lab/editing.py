"""Variant document edits for lab cards.

Each edit loads the test, migrates its stored blob with normalize(),
applies one variant-store operation and writes the canonical document
back. Domain logic is pure - database operations go through repo.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from growthlab.db import repo
from growthlab.db.repo import DbSession
from growthlab.metrics.lab import LabCardMetrics, compute_test_metrics
from growthlab.models.domain import ABTestEntity
from growthlab.variants.normalize import (
    append_ai_history,
    normalize,
    set_variant_image,
    set_variant_metric,
)

logger = logging.getLogger(__name__)


@dataclass
class VariantsState:
    """Canonical document of a test with its derived card metrics."""

    test_id: int
    variants: dict
    metrics: LabCardMetrics


def _load_test(session: DbSession, test_id: int) -> ABTestEntity:
    test = repo.get_test(session, test_id)
    if test is None:
        raise ValueError(f"Test not found: {test_id}")
    return test


def _state(test: ABTestEntity, variants: dict) -> VariantsState:
    return VariantsState(
        test_id=test.id,
        variants=variants,
        metrics=compute_test_metrics(
            variants,
            test.test_type,
            target_multiplier=test.target_multiplier,
            benchmark=test.vois_benchmark,
        ),
    )


def _save(session: DbSession, test: ABTestEntity, variants: dict) -> VariantsState:
    repo.update_test_variants(session, test.id, variants)
    repo.commit(session)
    return _state(test, variants)


def get_variants_state(session: DbSession, test_id: int) -> VariantsState:
    """Read a test's normalized document without writing it back.

    Raises:
        ValueError: If test not found.
    """
    test = _load_test(session, test_id)
    return _state(test, normalize(test.variants, test.images))


def assign_variant_image(
    session: DbSession,
    test_id: int,
    key: str,
    url: str | None,
) -> VariantsState:
    """Set (or clear, with a blank url) the image of one variant.

    Raises:
        ValueError: If test not found or key is not A..E.
    """
    test = _load_test(session, test_id)
    variants = set_variant_image(normalize(test.variants, test.images), key, url)
    action = "set" if variants[key]["assets"]["images"] else "cleared"
    logger.info(f"Test {test_id}: variant {key} image {action}")
    return _save(session, test, variants)


def record_variant_metric(
    session: DbSession,
    test_id: int,
    key: str,
    metric_key: str,
    value: Any,
) -> VariantsState:
    """Store a metric value typed for one variant.

    Raises:
        ValueError: If test not found or key / metric_key is unknown.
    """
    test = _load_test(session, test_id)
    variants = set_variant_metric(normalize(test.variants, test.images), key, metric_key, value)
    logger.info(f"Test {test_id}: variant {key} {metric_key}={value!r}")
    return _save(session, test, variants)


def record_ai_insight(
    session: DbSession,
    test_id: int,
    latest: Any,
    now: datetime | None = None,
) -> VariantsState:
    """Push a new AI result onto the test's history.

    Raises:
        ValueError: If test not found.
    """
    test = _load_test(session, test_id)
    variants = append_ai_history(normalize(test.variants, test.images), latest, now=now)
    logger.info(f"Test {test_id}: AI insight recorded, history size {len(variants['ai']['history'])}")
    return _save(session, test, variants)
