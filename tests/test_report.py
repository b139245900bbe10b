"""Tests for the lab dashboard report.

Tests validate:
1. Lab membership and dashboard filters (including date ranges)
2. Per-test facts (goals, winners, data quality inputs)
3. KPIs, shares and breakdowns with the unassigned bucket
4. Filter dropdown options
"""

from datetime import datetime, timedelta, timezone

import pytest

from growthlab.aggregation.report import (
    MISSING_CREATED_AT_WARNING,
    UNASSIGNED_LABEL,
    LabFilters,
    build_lab_report,
    build_options,
    compute_test_facts,
    filter_tests,
    is_lab_test,
    summarize_lab,
)
from growthlab.db import repo
from growthlab.db.schema import Product, User
from growthlab.models.domain import ProductEntity, UserEntity

NOW = datetime(2025, 6, 15, 12, 30, tzinfo=timezone.utc)


def _ctr(**values) -> dict:
    return {key: {"ctr": value} for key, value in values.items()}


class TestLabMembership:
    """is_lab_test."""

    def test_visibility_flag(self, make_test):
        assert is_lab_test(make_test(visibility={"lab": True}))
        assert not is_lab_test(make_test(visibility={"lab": False}))

    def test_truthy_non_bool_is_not_lab(self, make_test):
        assert not is_lab_test(make_test(visibility={"lab": "yes"}))

    def test_falls_back_to_show_in_lab(self, make_test):
        assert is_lab_test(make_test(visibility={}, show_in_lab=True))
        assert not is_lab_test(make_test(visibility={}, show_in_lab=False))

    def test_visibility_overrides_show_in_lab(self, make_test):
        assert not is_lab_test(make_test(visibility={"lab": False}, show_in_lab=True))


class TestFilterTests:
    """filter_tests."""

    def test_non_lab_tests_skipped(self, make_test):
        tests = [make_test(), make_test(visibility={"lab": False})]
        result, _ = filter_tests(tests, LabFilters(), NOW)
        assert [t.id for t in result] == [1]

    def test_equality_filters(self, make_test):
        tests = [
            make_test(category="Kitchen", platform="WB", designer_gen="Ann"),
            make_test(category="Home", platform="WB", designer_gen="Ann"),
            make_test(category="Kitchen", platform="Ozon", designer_gen="Ann"),
            make_test(category="Kitchen", platform="WB", designer_gen="Boris"),
        ]
        filters = LabFilters(category="Kitchen", platform="WB", designer="Ann")
        result, _ = filter_tests(tests, filters, NOW)
        assert [t.id for t in result] == [1]

    def test_test_type_filter_uses_classification(self, make_test):
        tests = [make_test(test_type="crt"), make_test(test_type="CR"), make_test(test_type="рич")]
        result, _ = filter_tests(tests, LabFilters(test_type="CTR"), NOW)
        assert [t.id for t in result] == [1]
        result, _ = filter_tests(tests, LabFilters(test_type="rich"), NOW)
        assert [t.id for t in result] == [3]

    def test_people_filters_use_assignee_fallback(self, make_test):
        tests = [
            make_test(assignees={"designer": "Ann", "contentManager": "Clara"}),
            make_test(designer_gen="Boris"),
        ]
        result, _ = filter_tests(tests, LabFilters(designer="Ann", content_manager="Clara"), NOW)
        assert [t.id for t in result] == [1]

    def test_sku_substring_case_insensitive(self, make_test):
        tests = [make_test(sku="MUG-RED-01"), make_test(sku="LAMP-02")]
        result, _ = filter_tests(tests, LabFilters(sku="red"), NOW)
        assert [t.sku for t in result] == ["MUG-RED-01"]

    def test_date_range(self, make_test):
        tests = [
            make_test(created_at=NOW - timedelta(days=2)),
            make_test(created_at=NOW - timedelta(days=20)),
            make_test(created_at=NOW - timedelta(days=60)),
            make_test(created_at=NOW - timedelta(days=200)),
        ]
        counts = {
            date_range: len(filter_tests(tests, LabFilters(date_range=date_range), NOW)[0])
            for date_range in ("7d", "30d", "90d", "all", "bogus")
        }
        assert counts == {"7d": 1, "30d": 2, "90d": 3, "all": 4, "bogus": 4}

    def test_naive_created_at_treated_as_utc(self, make_test):
        naive = (NOW - timedelta(days=1)).replace(tzinfo=None)
        result, _ = filter_tests([make_test(created_at=naive)], LabFilters(date_range="7d"), NOW)
        assert len(result) == 1

    def test_missing_created_at_warns_once(self, make_test):
        tests = [make_test(created_at=None), make_test(created_at=None), make_test()]
        result, warnings = filter_tests(tests, LabFilters(date_range="30d"), NOW)
        assert [t.id for t in result] == [3]
        assert warnings == [MISSING_CREATED_AT_WARNING]

    def test_missing_created_at_ignored_without_range(self, make_test):
        result, warnings = filter_tests([make_test(created_at=None)], LabFilters(), NOW)
        assert len(result) == 1
        assert warnings == []


class TestComputeTestFacts:
    """compute_test_facts."""

    def test_goal1_from_multiplier(self, make_test):
        facts = compute_test_facts(make_test(variants=_ctr(A=10, B=12.5), target_multiplier=1.25))
        assert facts.goal1 == pytest.approx(12.5)
        assert facts.goal1_reached is True

    def test_direct_goal_wins(self, make_test):
        test = make_test(variants=_ctr(A=10, B=12.5), metric_goal="13,0", target_multiplier=1.1)
        facts = compute_test_facts(test)
        assert facts.goal1 == pytest.approx(13)
        assert facts.goal1_reached is False

    def test_goal_not_reached_without_goal(self, make_test):
        facts = compute_test_facts(make_test(variants=_ctr(B=5)))
        assert facts.goal1 == 0
        assert facts.goal1_reached is False
        assert facts.goal2_reached is False

    def test_goal2_from_benchmark(self, make_test):
        facts = compute_test_facts(make_test(variants=_ctr(A=1, C=4), vois_benchmark=4.0))
        assert facts.goal2_reached is True

    def test_best_variant_defaults_to_control(self, make_test):
        facts = compute_test_facts(make_test(variants=_ctr(A=3)))
        assert facts.best_variant == "A"
        assert facts.best_value == 0

    def test_unassigned_labels(self, make_test):
        facts = compute_test_facts(make_test(category="  "))
        assert facts.designer == UNASSIGNED_LABEL
        assert facts.content_manager == UNASSIGNED_LABEL
        assert facts.category == UNASSIGNED_LABEL

    def test_control_image_from_legacy_list(self, make_test):
        facts = compute_test_facts(make_test(variants=None, images=["a.jpg"]))
        assert facts.has_control_image is True

    def test_control_image_missing(self, make_test):
        facts = compute_test_facts(make_test(variants={"B": {"assets": {"images": ["b.jpg"]}}}))
        assert facts.has_control_image is False

    def test_control_without_leader_has_zero_uplift(self, make_test):
        """Positive control and no comparable data: uplift 0, not -1."""
        facts = compute_test_facts(make_test(variants=_ctr(A=4)))
        assert facts.control_value == pytest.approx(4)
        assert facts.uplift == 0

    def test_unparsable_blob_degrades_to_empty(self, make_test):
        """A variants blob nested past the decoder limit reads as empty."""
        facts = compute_test_facts(make_test(variants="[" * 200000, images=["a.jpg"]))
        assert facts.control_value == 0
        assert facts.has_control_image is True

    def test_winner_flag(self, make_test):
        assert compute_test_facts(make_test(winner="B")).is_winner is True
        assert compute_test_facts(make_test(winner=" ")).is_winner is False


class TestBuildLabReport:
    """build_lab_report."""

    def test_designer_breakdown(self, make_test):
        """Two tests by Ann, one with a winner -> winRate 50."""
        tests = [
            make_test(designer_gen="Ann", winner="B", variants=_ctr(A=1, B=2)),
            make_test(designer_gen="Ann", variants=_ctr(A=1, B=1.1, C=1.05)),
        ]
        report = build_lab_report(tests, now=NOW)
        (row,) = report.breakdowns.by_designer
        assert row.label == "Ann"
        assert row.key == "Ann"
        assert row.tests == 2
        assert row.winners == 1
        assert row.variants == 3
        assert row.win_rate == pytest.approx(50)

    def test_unassigned_bucket_and_order(self, make_test):
        tests = [
            make_test(designer_gen="Boris"),
            make_test(),
            make_test(assignees={"designer": "Ann"}),
            make_test(designer_gen="Boris"),
        ]
        report = build_lab_report(tests, now=NOW)
        labels = [(r.label, r.tests) for r in report.breakdowns.by_designer]
        assert labels == [("Boris", 2), (UNASSIGNED_LABEL, 1), ("Ann", 1)]

    def test_kpis(self, make_test):
        tests = [
            make_test(
                test_type="CTR",
                status="active",
                winner="B",
                variants={
                    "A": {"ctr": 10, "assets": {"images": ["a.jpg"]}},
                    "B": {"ctr": 12},
                    "C": {"ctr": 11.5},
                },
                vois_benchmark=11,
            ),
            make_test(test_type="cr", status="Completed", variants={"A": {"cr": 2}, "B": {"cr": 2.1}}),
            make_test(test_type="РИЧ", status="backlog", variants=None),
        ]
        kpis = build_lab_report(tests, now=NOW).kpis

        assert kpis.total_tests == 3
        assert kpis.by_type == {"CTR": 1, "CR": 1, "RICH": 1}
        assert kpis.total_prepared == 3
        assert kpis.avg_prepared == pytest.approx(1)
        assert kpis.status.active == 1
        assert kpis.status.completed == 1
        assert kpis.winners == 1
        assert kpis.winners_share == pytest.approx(100 / 3)
        # 12 >= 10 * 1.2; 2.1 < 2.4
        assert kpis.goal1_reached == 1
        assert kpis.goal2_reached == 1
        assert kpis.strong_wins == 1
        assert kpis.strong_win_share == pytest.approx(100 / 3)
        assert kpis.data_quality.missing_a == 1
        assert kpis.data_quality.missing_metrics == 1
        assert kpis.data_quality.missing_images == 2

    def test_empty_report(self):
        report = build_lab_report([], now=NOW)
        assert report.kpis.total_tests == 0
        assert report.kpis.avg_prepared == 0
        assert report.kpis.winners_share == 0
        assert report.breakdowns.by_designer == []
        assert report.rows == []
        assert report.warnings == []

    def test_rows(self, make_test):
        test = make_test(
            sku="MUG-1",
            designer_gen="Ann",
            variants=_ctr(A="2,0", B="2,2", D="2,5"),
        )
        (row,) = build_lab_report([test], now=NOW).rows
        assert row.sku == "MUG-1"
        assert row.metric_a == pytest.approx(2)
        assert row.best_variant == "D"
        assert row.best_value == pytest.approx(2.5)
        assert row.uplift == pytest.approx(0.25)
        assert row.goal1 == pytest.approx(2.4)
        assert row.designer == "Ann"
        assert row.content_manager == UNASSIGNED_LABEL

    def test_row_uplift_without_comparable_data(self, make_test):
        """Control set but no variant measured: row shows A, value 0, uplift 0."""
        (row,) = build_lab_report([make_test(variants=_ctr(A="3,5"))], now=NOW).rows
        assert row.metric_a == pytest.approx(3.5)
        assert row.best_variant == "A"
        assert row.best_value == 0
        assert row.uplift == 0

    def test_bad_blob_does_not_break_report(self, make_test):
        """One undecodable stored document still yields a full report."""
        tests = [
            make_test(variants="[" * 200000),
            make_test(winner="B", variants=_ctr(A=1, B=2)),
        ]
        report = build_lab_report(tests, now=NOW)
        assert report.kpis.total_tests == 2
        assert report.kpis.winners == 1
        assert report.kpis.data_quality.missing_metrics == 1

    def test_filters_echoed(self, make_test):
        filters = LabFilters(date_range="30d", test_type="crt", sku="mug")
        report = build_lab_report([make_test()], filters, now=NOW)
        assert report.filters.date_range == "30d"
        assert report.filters.test_type == "CTR"
        assert report.filters.sku_search == "mug"

    def test_camel_case_payload(self, make_test):
        payload = build_lab_report([make_test()], now=NOW).model_dump(by_alias=True)
        assert set(payload) == {"warnings", "filters", "options", "kpis", "breakdowns", "rows"}
        assert "byDesigner" in payload["breakdowns"]
        assert "missingA" in payload["kpis"]["dataQuality"]
        assert "skuSearch" in payload["filters"]


class TestBuildOptions:
    """build_options."""

    def test_people_from_users(self, make_test):
        users = [
            UserEntity(id=1, username="ann", name="Ann", role="Designer"),
            UserEntity(id=2, username="clara", name="", role="content_manager"),
            UserEntity(id=3, username="olga", name="Olga", role="Контент-менеджер"),
            UserEntity(id=4, username="root", name="Root", role="admin"),
        ]
        options = build_options([make_test(designer_gen="Zed")], users, [])
        assert options.designers == ["Ann"]
        assert options.content_managers == ["clara", "Olga"]

    def test_people_fall_back_to_tests(self, make_test):
        tests = [
            make_test(designer_gen="Ann", content_manager="Clara"),
            make_test(assignees={"designer": "Boris"}),
            make_test(designer_gen="Ann"),
        ]
        options = build_options(tests, [], [])
        assert options.designers == ["Ann", "Boris"]
        assert options.content_managers == ["Clara"]

    def test_categories_and_platforms(self, make_test):
        tests = [make_test(category="Kitchen", platform="WB"), make_test(category="Home", platform="Ozon")]
        products = [
            ProductEntity(id=1, sku="X", product_name="X", category="Garden"),
            ProductEntity(id=2, sku="Y", product_name="Y", category="Home"),
        ]
        options = build_options(tests, [], products)
        assert options.categories == ["Kitchen", "Home", "Garden"]
        assert options.platforms == ["WB", "Ozon"]


class TestSummarizeLab:
    """summarize_lab against the database."""

    def test_loads_from_session(self, session, make_test):
        session.add(User(username="ann", name="Ann", role="designer"))
        session.add(User(username="gone", name="Gone", role="designer", is_active=False))
        session.add(Product(sku="SKU-9", product_name="Vase", category="Decor"))
        repo.create_test(session, make_test(id=0, designer_gen="Ann", winner="B"))
        repo.create_test(session, make_test(id=0, visibility={"lab": False}))
        repo.create_test(
            session,
            make_test(id=0, created_at=datetime(2020, 1, 1, tzinfo=timezone.utc)),
        )
        session.commit()

        report = summarize_lab(session, LabFilters(date_range="90d"), now=NOW)

        assert report.kpis.total_tests == 1
        assert report.kpis.winners == 1
        assert report.options.designers == ["Ann"]
        assert "Decor" in report.options.categories
