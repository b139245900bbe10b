"""Lab metrics API endpoint.

GET /api/metrics/lab - Dashboard KPIs, breakdowns and detail rows
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from growthlab.aggregation.report import LabFilters, summarize_lab
from growthlab.api.app import get_db_session
from growthlab.db.repo import DbSession
from growthlab.models.types import LabReport

router = APIRouter()


@router.get("/metrics/lab", response_model=LabReport)
def get_lab_metrics(
    date_range: str = Query("all", alias="dateRange"),
    category: str = "",
    test_type: str = Query("", alias="testType"),
    designer: str = "",
    content_manager: str = Query("", alias="contentManager"),
    sku: str = "",
    platform: str = "",
    session: DbSession = Depends(get_db_session),
) -> LabReport:
    """Get the lab dashboard report.

    Args:
        date_range: "7d", "30d", "90d" or anything else for all time.
        category: Exact category.
        test_type: CTR / CR / RICH (aliases accepted).
        designer: Exact designer name.
        content_manager: Exact content manager name.
        sku: Case-insensitive SKU substring.
        platform: Exact platform.
        session: Database session (injected).

    Returns:
        LabReport for the filtered lab tests.
    """
    filters = LabFilters(
        date_range=date_range.strip() or "all",
        category=category.strip(),
        test_type=test_type.strip(),
        designer=designer.strip(),
        content_manager=content_manager.strip(),
        sku=sku.strip(),
        platform=platform.strip(),
    )
    return summarize_lab(session, filters)
