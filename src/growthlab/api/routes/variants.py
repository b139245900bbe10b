"""Variant document API endpoints.

GET  /api/tests/{test_id}/variants             - Normalized document + card metrics
PUT  /api/tests/{test_id}/variants/{key}/image  - Assign or clear a variant image
PUT  /api/tests/{test_id}/variants/{key}/metric - Record a variant metric value
POST /api/tests/{test_id}/ai-insight            - Push a new AI result
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from growthlab.api.app import get_db_session
from growthlab.db import repo
from growthlab.db.repo import DbSession
from growthlab.lab.editing import (
    VariantsState,
    assign_variant_image,
    get_variants_state,
    record_ai_insight,
    record_variant_metric,
)
from growthlab.metrics.lab import get_available_variants
from growthlab.models.domain import StructuredInsight
from growthlab.models.types import (
    AiInsightSubmission,
    CardMetricsDetail,
    LeaderDetail,
    VariantImageUpdate,
    VariantMetricUpdate,
    VariantsDetail,
)
from growthlab.variants.normalize import insight_from_value

router = APIRouter()


def _build_detail(state: VariantsState) -> VariantsDetail:
    """Build VariantsDetail from the service state."""
    latest = insight_from_value(state.variants["ai"].get("latest"))
    if latest is None:
        kind = None
    else:
        kind = "structured" if isinstance(latest, StructuredInsight) else "text"

    metrics = state.metrics
    return VariantsDetail(
        test_id=state.test_id,
        variants=state.variants,
        metrics=CardMetricsDetail(
            test_type=metrics.test_type,
            metric_key=metrics.metric_key,
            available_variants=get_available_variants(metrics.test_type),
            control_value=metrics.control_value,
            leader=LeaderDetail(**asdict(metrics.leader)),
            goal1=metrics.goal1,
            goal2=metrics.goal2,
            goal1_progress=metrics.goal1_progress,
            goal2_progress=metrics.goal2_progress,
            prepared_variants=metrics.prepared_variants,
        ),
        latest_insight_kind=kind,
    )


def _require_test(session: DbSession, test_id: int) -> None:
    if repo.get_test(session, test_id) is None:
        raise HTTPException(status_code=404, detail="Test not found")


@router.get("/tests/{test_id}/variants", response_model=VariantsDetail)
def get_variants(
    test_id: int,
    session: DbSession = Depends(get_db_session),
) -> VariantsDetail:
    """Get a test's normalized variant document.

    Raises:
        HTTPException: 404 if test not found.
    """
    _require_test(session, test_id)
    return _build_detail(get_variants_state(session, test_id))


@router.put("/tests/{test_id}/variants/{key}/image", response_model=VariantsDetail)
def put_variant_image(
    test_id: int,
    key: str,
    body: VariantImageUpdate,
    session: DbSession = Depends(get_db_session),
) -> VariantsDetail:
    """Assign an uploaded image URL to a variant.

    Raises:
        HTTPException: 404 if test not found, 422 for an unknown key.
    """
    _require_test(session, test_id)
    try:
        state = assign_variant_image(session, test_id, key, body.url)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _build_detail(state)


@router.put("/tests/{test_id}/variants/{key}/metric", response_model=VariantsDetail)
def put_variant_metric(
    test_id: int,
    key: str,
    body: VariantMetricUpdate,
    session: DbSession = Depends(get_db_session),
) -> VariantsDetail:
    """Record a CTR / CR value for a variant.

    Raises:
        HTTPException: 404 if test not found, 422 for an unknown key.
    """
    _require_test(session, test_id)
    try:
        state = record_variant_metric(session, test_id, key, body.metric_key, body.value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _build_detail(state)


@router.post("/tests/{test_id}/ai-insight", response_model=VariantsDetail)
def post_ai_insight(
    test_id: int,
    body: AiInsightSubmission,
    session: DbSession = Depends(get_db_session),
) -> VariantsDetail:
    """Store a new AI result; the previous one moves to history.

    Raises:
        HTTPException: 404 if test not found.
    """
    _require_test(session, test_id)
    return _build_detail(record_ai_insight(session, test_id, body.value))
