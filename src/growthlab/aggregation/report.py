"""Lab dashboard report.

Rolls per-test lab metrics up into KPIs, designer / content manager /
category breakdowns and data-quality counters.
Domain logic is pure - database operations go through repo.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from growthlab.db import repo
from growthlab.db.repo import DbSession
from growthlab.metrics.lab import (
    CONTROL_VARIANT,
    calc_goal1,
    calc_goal2,
    classify_test_type,
    count_prepared_variants,
    get_metric_key,
    get_value,
    parse_metric,
    pick_leader,
)
from growthlab.models.domain import ABTestEntity, ProductEntity, TestType, UserEntity
from growthlab.models.types import (
    BreakdownRow,
    DataQuality,
    LabBreakdowns,
    LabFiltersEcho,
    LabKpis,
    LabOptions,
    LabReport,
    LabRow,
    StatusCounts,
)
from growthlab.variants.normalize import normalize

logger = logging.getLogger(__name__)

DATE_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}

# Catch-all bucket for tests without a designer / content manager / category
UNASSIGNED_LABEL = "—"

MISSING_CREATED_AT_WARNING = (
    "Some tests have no creation date; the date filter may be incomplete."
)


@dataclass
class LabFilters:
    """Dashboard filters. Empty values mean no constraint."""

    date_range: str = "all"
    category: str = ""
    test_type: str = ""
    designer: str = ""
    content_manager: str = ""
    sku: str = ""
    platform: str = ""


@dataclass
class LabTestFacts:
    """Per-test values the report is built from."""

    test: ABTestEntity
    test_type: TestType
    designer: str
    content_manager: str
    category: str
    control_value: float
    best_variant: str
    best_value: float
    uplift: float
    goal1: float
    goal2: float
    prepared: int
    is_winner: bool
    is_strong_win: bool
    has_any_metric: bool
    has_control_image: bool

    @property
    def goal1_reached(self) -> bool:
        return self.goal1 > 0 and self.best_value >= self.goal1

    @property
    def goal2_reached(self) -> bool:
        return self.goal2 > 0 and self.best_value >= self.goal2


def _text(value: object) -> str:
    return str(value or "").strip()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def is_lab_test(test: ABTestEntity) -> bool:
    """Whether a test is on the lab board."""
    visibility = test.visibility if isinstance(test.visibility, dict) else {}
    if "lab" in visibility:
        return visibility["lab"] is True
    return bool(test.show_in_lab)


def designer_name(test: ABTestEntity) -> str:
    return _text(test.designer_gen) or _text(test.assignees.get("designer"))


def content_manager_name(test: ABTestEntity) -> str:
    return _text(test.content_manager) or _text(test.assignees.get("contentManager"))


def _matches(test: ABTestEntity, filters: LabFilters) -> bool:
    """Check every equality / substring filter except the date range."""
    if filters.category and _text(test.category) != filters.category:
        return False
    if filters.test_type and classify_test_type(test.test_type) != classify_test_type(
        filters.test_type
    ):
        return False
    if filters.designer and designer_name(test) != filters.designer:
        return False
    if filters.content_manager and content_manager_name(test) != filters.content_manager:
        return False
    if filters.sku and filters.sku.lower() not in _text(test.sku).lower():
        return False
    if filters.platform and _text(test.platform) != filters.platform:
        return False
    return True


def filter_tests(
    tests: Iterable[ABTestEntity],
    filters: LabFilters,
    now: datetime,
) -> tuple[list[ABTestEntity], list[str]]:
    """Keep lab tests that satisfy the filters.

    Returns:
        Tuple of (matching tests, warnings).
    """
    warnings: list[str] = []
    days = DATE_RANGE_DAYS.get(filters.date_range)
    range_start = _as_utc(now) - timedelta(days=days) if days else None

    result = []
    for test in tests:
        if not is_lab_test(test) or not _matches(test, filters):
            continue
        if range_start is not None:
            if test.created_at is None:
                if MISSING_CREATED_AT_WARNING not in warnings:
                    warnings.append(MISSING_CREATED_AT_WARNING)
                continue
            if _as_utc(test.created_at) < range_start:
                continue
        result.append(test)
    return result, warnings


def compute_test_facts(test: ABTestEntity) -> LabTestFacts:
    """Derive the report facts for one test.

    Pure function - no database access.
    """
    test_type = classify_test_type(test.test_type)
    metric_key = get_metric_key(test_type)
    doc = normalize(test.variants, test.images)

    control_value = get_value(doc, CONTROL_VARIANT, metric_key)
    leader = pick_leader(doc, test_type)

    # A goal typed directly on the test overrides the multiplier
    direct_goal = parse_metric(test.metric_goal)
    goal1 = direct_goal if direct_goal > 0 else calc_goal1(control_value, test.target_multiplier)

    return LabTestFacts(
        test=test,
        test_type=test_type,
        designer=designer_name(test) or UNASSIGNED_LABEL,
        content_manager=content_manager_name(test) or UNASSIGNED_LABEL,
        category=_text(test.category) or UNASSIGNED_LABEL,
        control_value=control_value,
        best_variant=leader.leader_variant or CONTROL_VARIANT,
        best_value=leader.leader_value,
        uplift=leader.leader_uplift,
        goal1=goal1,
        goal2=calc_goal2(test.vois_benchmark),
        prepared=count_prepared_variants(doc, test_type),
        is_winner=bool(_text(test.winner)),
        is_strong_win=leader.is_leader_significant,
        has_any_metric=leader.has_any_data,
        has_control_image=bool(doc["assets"]["images"].get(CONTROL_VARIANT)),
    )


def _share(count: int, total: int) -> float:
    return count / total * 100 if total > 0 else 0.0


def build_breakdown(
    facts: list[LabTestFacts],
    label_of: Callable[[LabTestFacts], str],
) -> list[BreakdownRow]:
    """Group facts by label, in first-seen order."""
    groups: dict[str, dict[str, int]] = {}
    for fact in facts:
        label = label_of(fact)
        row = groups.setdefault(
            label, {"tests": 0, "variants": 0, "winners": 0, "goal1": 0, "goal2": 0}
        )
        row["tests"] += 1
        row["variants"] += fact.prepared
        row["winners"] += int(fact.is_winner)
        row["goal1"] += int(fact.goal1_reached)
        row["goal2"] += int(fact.goal2_reached)

    return [
        BreakdownRow(
            key=label,
            label=label,
            win_rate=_share(row["winners"], row["tests"]),
            **row,
        )
        for label, row in groups.items()
    ]


def _role_matches(user: UserEntity, needles: tuple[str, ...]) -> bool:
    role = _text(user.role).lower()
    return any(needle in role for needle in needles)


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def build_options(
    tests: list[ABTestEntity],
    users: Iterable[UserEntity],
    products: Iterable[ProductEntity],
) -> LabOptions:
    """Dropdown values: people from active users, else names seen in tests."""
    users = list(users)
    designer_users = [u for u in users if _role_matches(u, ("designer",))]
    content_users = [u for u in users if _role_matches(u, ("content", "контент"))]

    if designer_users:
        designers = _unique(_text(u.name) or _text(u.username) for u in designer_users)
    else:
        designers = _unique(designer_name(t) for t in tests)

    if content_users:
        content_managers = _unique(_text(u.name) or _text(u.username) for u in content_users)
    else:
        content_managers = _unique(content_manager_name(t) for t in tests)

    categories = _unique(
        [_text(t.category) for t in tests] + [_text(p.category) for p in products]
    )

    return LabOptions(
        categories=categories,
        designers=designers,
        content_managers=content_managers,
        platforms=_unique(_text(t.platform) for t in tests),
    )


def _status_counts(tests: list[ABTestEntity]) -> StatusCounts:
    active = completed = 0
    for test in tests:
        status = _text(test.status).lower()
        if "active" in status or "running" in status:
            active += 1
        if "complete" in status or "finish" in status:
            completed += 1
    return StatusCounts(active=active, completed=completed)


def _build_kpis(facts: list[LabTestFacts]) -> LabKpis:
    total = len(facts)
    total_prepared = sum(f.prepared for f in facts)
    winners = sum(1 for f in facts if f.is_winner)
    goal1_reached = sum(1 for f in facts if f.goal1_reached)
    goal2_reached = sum(1 for f in facts if f.goal2_reached)
    strong_wins = sum(1 for f in facts if f.is_strong_win)

    by_type = {"CTR": 0, "CR": 0, "RICH": 0}
    for fact in facts:
        by_type[fact.test_type] += 1

    return LabKpis(
        total_tests=total,
        by_type=by_type,
        total_prepared=total_prepared,
        avg_prepared=total_prepared / total if total > 0 else 0.0,
        status=_status_counts([f.test for f in facts]),
        winners=winners,
        winners_share=_share(winners, total),
        goal1_reached=goal1_reached,
        goal1_share=_share(goal1_reached, total),
        goal2_reached=goal2_reached,
        goal2_share=_share(goal2_reached, total),
        strong_wins=strong_wins,
        strong_win_share=_share(strong_wins, total),
        data_quality=DataQuality(
            missing_a=sum(1 for f in facts if f.control_value <= 0),
            missing_metrics=sum(1 for f in facts if not f.has_any_metric),
            missing_images=sum(1 for f in facts if not f.has_control_image),
        ),
    )


def _build_row(fact: LabTestFacts) -> LabRow:
    test = fact.test
    return LabRow(
        id=test.id,
        sku=test.sku,
        product_name=test.product_name,
        test_type=fact.test_type,
        category=test.category,
        designer=fact.designer,
        content_manager=fact.content_manager,
        metric_a=fact.control_value,
        best_variant=fact.best_variant,
        best_value=fact.best_value,
        uplift=fact.uplift,
        goal1=fact.goal1,
        goal2=fact.goal2,
        status=test.status,
        created_at=test.created_at,
    )


def build_lab_report(
    tests: Iterable[ABTestEntity],
    filters: LabFilters | None = None,
    users: Iterable[UserEntity] = (),
    products: Iterable[ProductEntity] = (),
    now: datetime | None = None,
) -> LabReport:
    """Build the lab dashboard report.

    Pure function - no database access.

    Args:
        tests: All tests; non-lab tests are skipped.
        filters: Dashboard filters (defaults to no constraint).
        users: Active users, for the people dropdowns.
        products: Catalog products, for the category dropdown.
        now: Reference time for the date range (defaults to now, UTC).

    Returns:
        LabReport with kpis, breakdowns, rows and options.
    """
    filters = filters or LabFilters()
    now = now or datetime.now(timezone.utc)

    filtered, warnings = filter_tests(tests, filters, now)
    facts = [compute_test_facts(t) for t in filtered]

    return LabReport(
        warnings=warnings,
        filters=LabFiltersEcho(
            date_range=filters.date_range,
            category=filters.category,
            test_type=classify_test_type(filters.test_type) if filters.test_type else "",
            designer=filters.designer,
            content_manager=filters.content_manager,
            sku_search=filters.sku,
            platform=filters.platform,
        ),
        options=build_options(filtered, users, products),
        kpis=_build_kpis(facts),
        breakdowns=LabBreakdowns(
            by_designer=build_breakdown(facts, lambda f: f.designer),
            by_content=build_breakdown(facts, lambda f: f.content_manager),
            by_category=build_breakdown(facts, lambda f: f.category),
        ),
        rows=[_build_row(f) for f in facts],
    )


def summarize_lab(
    session: DbSession,
    filters: LabFilters | None = None,
    now: datetime | None = None,
) -> LabReport:
    """Load tests, active users and products and build the lab report.

    Args:
        session: Database session.
        filters: Dashboard filters.
        now: Reference time for the date range.

    Returns:
        LabReport for the dashboard.
    """
    tests = repo.list_tests(session)
    report = build_lab_report(
        tests,
        filters,
        users=repo.list_active_users(session),
        products=repo.list_products(session),
        now=now,
    )
    logger.info(f"Lab report: {report.kpis.total_tests} of {len(tests)} tests after filters")
    return report
