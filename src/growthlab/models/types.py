"""Pydantic models for the growthlab API.

Field names are snake_case in Python and camelCase on the wire; the
dashboard reads `kpis`, `breakdowns`, `rows` and `options` field-for-field.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Lab Report
# ============================================================================


class LabFiltersEcho(CamelModel):
    """Filters as applied, echoed back to the dashboard."""

    date_range: str
    category: str
    test_type: str
    designer: str
    content_manager: str
    sku_search: str
    platform: str


class LabOptions(CamelModel):
    """Values offered in the dashboard filter dropdowns."""

    categories: list[str]
    designers: list[str]
    content_managers: list[str]
    platforms: list[str]


class StatusCounts(CamelModel):
    active: int
    completed: int


class DataQuality(CamelModel):
    """Diagnostic counters, not blocking errors."""

    missing_a: int
    missing_metrics: int
    missing_images: int


class LabKpis(CamelModel):
    """Totals over the filtered tests."""

    total_tests: int
    by_type: dict[str, int]
    total_prepared: int
    avg_prepared: float
    status: StatusCounts
    winners: int
    winners_share: float
    goal1_reached: int
    goal1_share: float
    goal2_reached: int
    goal2_share: float
    strong_wins: int
    strong_win_share: float
    data_quality: DataQuality


class BreakdownRow(CamelModel):
    """One group in a designer / content manager / category rollup."""

    key: str
    label: str
    tests: int
    variants: int
    winners: int
    goal1: int
    goal2: int
    win_rate: float


class LabBreakdowns(CamelModel):
    by_designer: list[BreakdownRow]
    by_content: list[BreakdownRow]
    by_category: list[BreakdownRow]


class LabRow(CamelModel):
    """Per-test detail row."""

    id: int
    sku: str
    product_name: str
    test_type: Literal["CTR", "CR", "RICH"]
    category: str | None
    designer: str
    content_manager: str
    metric_a: float
    best_variant: str
    best_value: float
    uplift: float
    goal1: float
    goal2: float
    status: str | None
    created_at: datetime | None


class LabReport(CamelModel):
    """Full response of the lab metrics endpoint."""

    warnings: list[str]
    filters: LabFiltersEcho
    options: LabOptions
    kpis: LabKpis
    breakdowns: LabBreakdowns
    rows: list[LabRow]


# ============================================================================
# Variant Editing
# ============================================================================


class LeaderDetail(CamelModel):
    leader_variant: str | None
    leader_value: float
    leader_uplift: float
    is_leader_significant: bool
    has_any_data: bool


class CardMetricsDetail(CamelModel):
    """Progress bars and leader badge for one test."""

    test_type: Literal["CTR", "CR", "RICH"]
    metric_key: Literal["ctr", "cr"]
    available_variants: list[str]
    control_value: float
    leader: LeaderDetail
    goal1: float
    goal2: float
    goal1_progress: float
    goal2_progress: float
    prepared_variants: int


class VariantsDetail(CamelModel):
    """Normalized variant document of a test with its derived metrics."""

    test_id: int
    variants: dict[str, Any]
    metrics: CardMetricsDetail
    latest_insight_kind: Literal["text", "structured"] | None = None


class VariantImageUpdate(CamelModel):
    url: str | None


class VariantMetricUpdate(CamelModel):
    metric_key: Literal["ctr", "cr"]
    value: str | float | None


class AiInsightSubmission(CamelModel):
    """New AI result: free text or a structured object."""

    value: str | dict | list
