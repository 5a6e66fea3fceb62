import sqlite3
from datetime import date
from pathlib import Path

import pytest

from conftest import seed_catalog

from clinicost.domain.errors import DataIntegrityError, NotFoundError, ValidationError
from clinicost.domain.models import ConsumptionReport, ExpectedConsumable, Treatment
from clinicost.domain.variance import compute_variance, consumption_stats, consumption_trends, cost_analysis
from clinicost.repositories.sqlite_repo import SqliteRepository
from clinicost.services.variance_service import VarianceService


def _setup(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "variance.db")
    repo.init_db()
    seed_catalog(repo)
    repo.add_appointment("APT-1", "A", status="completed")
    svc = VarianceService(repo, today=lambda: date(2026, 3, 10))
    return repo, svc


def _report(product_id, pct, cost, actual=1.0, variance_qty=0.0, report_date="2026-03-01", rid=1):
    return ConsumptionReport(
        id=rid, appointment_id="APT", soin_id="A", product_id=product_id,
        expected_quantity=1.0, actual_quantity=actual, variance_quantity=variance_qty,
        variance_percentage=pct, cost_impact=cost, report_date=report_date, created_at=report_date,
    )


def test_compute_variance_overconsumption():
    assert compute_variance(2, 5, 1000) == (3.0, 150.0, 3000.0)


def test_compute_variance_guards_zero_expected():
    qty, pct, cost = compute_variance(0, 3, 1000)
    assert qty == 3
    assert pct == 0
    assert cost == 3000


def test_underconsumption_has_negative_impact():
    qty, pct, cost = compute_variance(4, 3, 250)
    assert qty == -1
    assert pct == -25
    assert cost == -250


def test_reconcile_persists_report_with_frozen_unit_price(tmp_path: Path):
    repo, svc = _setup(tmp_path)

    report = svc.reconcile("APT-1", "A", "P", 2, 5)

    assert report.variance_quantity == 3
    assert report.variance_percentage == 150
    assert report.cost_impact == 3000
    assert report.report_date == "2026-03-10"
    assert repo.list_consumption_reports() == [report]


def test_reports_cannot_be_updated(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    report = svc.reconcile("APT-1", "A", "P", 2, 2)

    conn = repo._conn()
    with pytest.raises(sqlite3.DatabaseError, match="immutable"):
        conn.execute("UPDATE consumption_reports SET cost_impact=0 WHERE id=?", (report.id,))
    conn.close()


@pytest.mark.parametrize(
    "appointment_id,soin_id,product_id",
    [("NOPE", "A", "P"), ("APT-1", "NOPE", "P"), ("APT-1", "A", "NOPE")],
)
def test_reconcile_rejects_unknown_entities(tmp_path: Path, appointment_id, soin_id, product_id):
    repo, svc = _setup(tmp_path)

    with pytest.raises(DataIntegrityError):
        svc.reconcile(appointment_id, soin_id, product_id, 1, 1)

    assert repo.list_consumption_reports() == []


def test_data_integrity_error_is_a_not_found_error(tmp_path: Path):
    _, svc = _setup(tmp_path)
    with pytest.raises(NotFoundError):
        svc.reconcile("APT-1", "A", "ghost", 1, 1)


def test_reconcile_rejects_negative_quantities(tmp_path: Path):
    _, svc = _setup(tmp_path)
    with pytest.raises(ValidationError):
        svc.reconcile("APT-1", "A", "P", -1, 2)


def test_reconcile_appointment_compares_recorded_and_expected(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_product("Q", "Cannula", 200.0, quantity=50, min_quantity=5)
    repo.add_appointment(
        "APT-2", "A", status="completed",
        consumed_products=[ExpectedConsumable("P", 3), ExpectedConsumable("Q", 2)],
    )

    reports = svc.reconcile_appointment("APT-2")

    by_product = {r.product_id: r for r in reports}
    assert set(by_product) == {"P", "Q"}
    assert by_product["P"].variance_quantity == 1
    assert by_product["P"].variance_percentage == 50
    assert by_product["P"].cost_impact == 1000
    # not planned at all: percentage guarded, cost still counted
    assert by_product["Q"].expected_quantity == 0
    assert by_product["Q"].variance_percentage == 0
    assert by_product["Q"].cost_impact == 400


def test_reconcile_appointment_requires_completed_status(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_appointment("APT-3", "A", status="scheduled")

    with pytest.raises(ValidationError, match="not completed"):
        svc.reconcile_appointment("APT-3")


def test_reconcile_appointment_is_all_or_nothing(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_appointment("APT-4", "A", status="completed", consumed_products=[ExpectedConsumable("GHOST", 1)])

    with pytest.raises(DataIntegrityError):
        svc.reconcile_appointment("APT-4")

    assert repo.list_consumption_reports() == []


def test_consumption_stats_and_top_overconsumed():
    reports = [
        _report("P", 150.0, 3000.0, rid=1),
        _report("P", 50.0, 1000.0, rid=2),
        _report("Q", -20.0, -50.0, rid=3),
        _report("R", 10.0, 20.0, rid=4),
    ]
    stats = consumption_stats(reports)

    assert stats.total_reports == 4
    assert stats.average_variance == pytest.approx(47.5)
    assert stats.cost_impact == pytest.approx(3970.0)
    assert [p.product_id for p in stats.top_overconsumed_products] == ["P", "R"]
    assert stats.top_overconsumed_products[0].average_variance == pytest.approx(100.0)
    assert stats.top_overconsumed_products[0].cost_impact == pytest.approx(4000.0)


def test_top_overconsumed_keeps_five():
    reports = [_report(f"P{i}", float(i + 1), 1.0, rid=i) for i in range(8)]
    top = consumption_stats(reports).top_overconsumed_products
    assert [p.product_id for p in top] == ["P7", "P6", "P5", "P4", "P3"]


def test_stats_of_no_reports():
    stats = consumption_stats([])
    assert stats.total_reports == 0
    assert stats.average_variance == 0
    assert stats.cost_impact == 0
    assert stats.top_overconsumed_products == []


def test_trends_only_use_window():
    reports = [
        _report("P", 0, 0, actual=2, variance_qty=-1, report_date="2026-03-05", rid=1),
        _report("P", 0, 0, actual=4, variance_qty=2, report_date="2026-03-06", rid=2),
        _report("P", 0, 0, actual=100, variance_qty=50, report_date="2026-01-01", rid=3),
    ]
    trends = consumption_trends(reports, since=date(2026, 3, 1))

    assert len(trends) == 1
    assert trends[0].total_consumed == 6
    assert trends[0].average_consumption == 3
    assert trends[0].variance == 3


def test_service_listing_and_stats(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    svc.reconcile("APT-1", "A", "P", 2, 5)
    svc.reconcile("APT-1", "A", "P", 2, 1)

    assert len(svc.list_reports(limit=1)) == 1
    assert len(svc.reports_for_soin("A")) == 2
    assert len(svc.reports_for_product("P")) == 2
    stats = svc.stats()
    assert stats.total_reports == 2
    assert stats.average_variance == pytest.approx(50.0)
    assert stats.cost_impact == pytest.approx(2000.0)
    assert len(svc.trends()) == 1


def test_reconcile_requires_completed_appointment(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_appointment("APT-S", "A", status="scheduled")

    with pytest.raises(ValidationError, match="not completed"):
        svc.reconcile("APT-S", "A", "P", 2, 3)

    assert repo.list_consumption_reports() == []


def test_reconcile_rejects_treatment_other_than_the_appointments(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_treatment("B", "Botox", 3000.0, [ExpectedConsumable("P", 1)])

    with pytest.raises(DataIntegrityError, match="is for treatment A"):
        svc.reconcile("APT-1", "B", "P", 1, 1)

    assert repo.list_consumption_reports() == []


def test_list_reports_with_zero_limit_is_empty(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    svc.reconcile("APT-1", "A", "P", 2, 2)

    assert svc.list_reports(limit=0) == []
    assert len(svc.list_reports()) == 1


def _treatment_report(appointment_id, product_id, expected, actual, cost, pct, soin_id="A", report_date="2026-03-05", rid=1):
    return ConsumptionReport(
        id=rid, appointment_id=appointment_id, soin_id=soin_id, product_id=product_id,
        expected_quantity=expected, actual_quantity=actual, variance_quantity=actual - expected,
        variance_percentage=pct, cost_impact=cost, report_date=report_date, created_at=report_date,
    )


def test_cost_analysis_compares_plan_with_usage():
    treatment = Treatment("A", "Lip filler", 5000.0, (ExpectedConsumable("P", 2),))
    reports = [
        _treatment_report("APT-1", "P", 2, 5, 3000.0, 150.0, rid=1),
        _treatment_report("APT-2", "P", 2, 2, 0.0, 0.0, rid=2),
        _treatment_report("APT-2", "Q", 1, 0.5, -50.0, -50.0, rid=3),
        _treatment_report("APT-3", "P", 2, 9, 7000.0, 350.0, report_date="2026-01-01", rid=4),
        _treatment_report("APT-4", "P", 2, 9, 7000.0, 350.0, soin_id="B", rid=5),
    ]

    analysis = cost_analysis(reports, treatment, date(2026, 3, 1), date(2026, 3, 10), {"P": 1000.0, "Q": 100.0})

    assert analysis.period_start == "2026-03-01"
    assert analysis.period_end == "2026-03-10"
    assert analysis.total_sessions == 2
    assert analysis.expected_cost == pytest.approx(4100.0)
    assert analysis.cost_variance == pytest.approx(2950.0)
    assert analysis.actual_cost == pytest.approx(7050.0)
    assert analysis.cost_variance_percentage == pytest.approx(2950.0 / 4100.0 * 100)
    # 10000 revenue against 7050 actual cost
    assert analysis.profit_margin == 30
    first, second = analysis.optimization_suggestions
    assert (first.product_id, first.type, first.priority) == ("P", "reduce_overconsumption", "high")
    assert first.potential_savings == pytest.approx(3000.0)
    assert (second.product_id, second.type, second.potential_savings) == ("Q", "adjust_expected_quantity", 0.0)


def test_cost_analysis_without_reports_is_all_zero():
    treatment = Treatment("A", "Lip filler", 5000.0)

    analysis = cost_analysis([], treatment, date(2026, 3, 1), date(2026, 3, 10), {})

    assert analysis.total_sessions == 0
    assert analysis.expected_cost == 0
    assert analysis.cost_variance_percentage == 0
    assert analysis.profit_margin == 0
    assert analysis.optimization_suggestions == ()


def test_service_cost_analyses_per_treatment(tmp_path: Path):
    repo, svc = _setup(tmp_path)
    repo.add_appointment("APT-2", "A", status="completed")
    svc.reconcile("APT-1", "A", "P", 2, 5)
    svc.reconcile("APT-2", "A", "P", 2, 2)

    (analysis,) = svc.cost_analyses()

    assert analysis.soin_id == "A"
    assert analysis.total_sessions == 2
    assert analysis.expected_cost == pytest.approx(4000.0)
    assert analysis.actual_cost == pytest.approx(7000.0)
    assert analysis.cost_variance_percentage == pytest.approx(75.0)
    assert analysis.profit_margin == 30
    assert svc.cost_analyses(soin_id="A") == [analysis]


def test_service_cost_analyses_unknown_treatment(tmp_path: Path):
    _, svc = _setup(tmp_path)
    with pytest.raises(NotFoundError):
        svc.cost_analyses(soin_id="NOPE")
