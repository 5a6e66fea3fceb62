from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, Optional

from clinicost.config import DEFAULT_SETTINGS, EngineSettings
from clinicost.domain.errors import DataIntegrityError, NotFoundError, ValidationError
from clinicost.domain.models import ConsumptionReport, ConsumptionStats, ConsumptionTrend, CostAnalysis
from clinicost.domain.variance import compute_variance, consumption_stats, consumption_trends, cost_analysis
from clinicost.repositories.contracts import ReportStore
from clinicost.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("clinicost.variance")


class VarianceService:
    def __init__(
        self,
        repo: ReportStore,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        settings: EngineSettings = DEFAULT_SETTINGS,
        today: Callable[[], date] = date.today,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))
        self.settings = settings
        self.today = today

    def _require(self, appointment_id: str, soin_id: str):
        appointment = self.repo.get_appointment(appointment_id)
        if appointment is None:
            raise DataIntegrityError(f"Appointment {appointment_id} not found.")
        treatment = self.repo.get_treatment(soin_id)
        if treatment is None:
            raise DataIntegrityError(f"Treatment {soin_id} not found.")
        if appointment.soin_id != treatment.id:
            raise DataIntegrityError(
                f"Appointment {appointment_id} is for treatment {appointment.soin_id}, not {soin_id}."
            )
        if appointment.status != "completed":
            raise ValidationError(f"Appointment {appointment_id} is not completed (status={appointment.status}).")
        return appointment, treatment

    def _row(self, appointment_id: str, soin_id: str, product_id: str, expected: float, actual: float) -> dict:
        if expected < 0 or actual < 0:
            raise ValidationError("Quantities must be >= 0.")
        product = self.repo.get_product_by_id(product_id)
        if product is None:
            raise DataIntegrityError(f"Product {product_id} not found.")
        # unit price in effect now is frozen into the report
        variance_qty, variance_pct, cost_impact = compute_variance(expected, actual, product.unit_price)
        return {
            "appointment_id": appointment_id,
            "soin_id": soin_id,
            "product_id": product_id,
            "expected_quantity": float(expected),
            "actual_quantity": float(actual),
            "variance_quantity": variance_qty,
            "variance_percentage": variance_pct,
            "cost_impact": cost_impact,
            "report_date": self.today().isoformat(),
        }

    def reconcile(
        self,
        appointment_id: str,
        soin_id: str,
        product_id: str,
        expected_quantity: float,
        actual_quantity: float,
    ) -> ConsumptionReport:
        """Record one expected-versus-actual line for an appointment.

        Unknown appointment, treatment or product ids raise
        ``DataIntegrityError``; nothing is written in that case.
        """
        self._require(appointment_id, soin_id)
        row = self._row(appointment_id, soin_id, product_id, expected_quantity, actual_quantity)
        with self.uow_factory() as uow:
            report = uow.create_consumption_reports([row])[0]
        log.info(
            "consumption_reconciled report_id=%s appointment=%s product=%s variance=%.2f cost_impact=%.2f",
            report.id, appointment_id, product_id, report.variance_quantity, report.cost_impact,
        )
        return report

    def reconcile_appointment(self, appointment_id: str) -> list[ConsumptionReport]:
        """Reconcile every product of a completed appointment in one batch.

        Compares the products recorded on the appointment with its treatment's
        expected consumables; a product present on only one side counts as 0
        on the other.
        """
        appointment = self.repo.get_appointment(appointment_id)
        if appointment is None:
            raise DataIntegrityError(f"Appointment {appointment_id} not found.")
        _, treatment = self._require(appointment_id, appointment.soin_id)

        expected: dict[str, float] = {}
        for c in treatment.expected_consumables:
            expected[c.product_id] = expected.get(c.product_id, 0) + c.quantity
        actual: dict[str, float] = {}
        for c in appointment.consumed_products:
            actual[c.product_id] = actual.get(c.product_id, 0) + c.quantity

        product_ids = list(expected)
        product_ids += [pid for pid in actual if pid not in expected]
        rows = [
            self._row(appointment_id, treatment.id, pid, expected.get(pid, 0.0), actual.get(pid, 0.0))
            for pid in product_ids
        ]
        if not rows:
            return []

        with self.uow_factory() as uow:
            reports = uow.create_consumption_reports(rows)
        log.info(
            "appointment_reconciled appointment=%s reports=%s cost_impact=%.2f",
            appointment_id, len(reports), sum(r.cost_impact for r in reports),
        )
        return reports

    def list_reports(self, limit: Optional[int] = None) -> list[ConsumptionReport]:
        return self.repo.list_consumption_reports(limit=limit)

    def reports_for_soin(self, soin_id: str) -> list[ConsumptionReport]:
        return self.repo.list_consumption_reports(soin_id=soin_id)

    def reports_for_product(self, product_id: str) -> list[ConsumptionReport]:
        return self.repo.list_consumption_reports(product_id=product_id)

    def stats(self) -> ConsumptionStats:
        return consumption_stats(self.repo.list_consumption_reports(), self.settings.top_overconsumed_limit)

    def trends(self, days: Optional[int] = None) -> list[ConsumptionTrend]:
        window = self.settings.recent_reports_days if days is None else int(days)
        since = self.today() - timedelta(days=window)
        return consumption_trends(self.repo.list_consumption_reports(since_iso=since.isoformat()), since)

    def cost_analyses(self, soin_id: Optional[str] = None, days: Optional[int] = None) -> list[CostAnalysis]:
        """Per-treatment cost analysis over the recent report window.

        With ``soin_id`` a single analysis is returned (empty figures when the
        treatment has no reports); otherwise one per treatment that has reports.
        """
        window = self.settings.recent_reports_days if days is None else int(days)
        until = self.today()
        since = until - timedelta(days=window)
        reports = self.repo.list_consumption_reports(soin_id=soin_id, since_iso=since.isoformat())

        if soin_id is not None:
            if self.repo.get_treatment(soin_id) is None:
                raise NotFoundError(f"Treatment {soin_id} not found.")
            soin_ids = [soin_id]
        else:
            soin_ids = sorted({r.soin_id for r in reports})

        prices: dict[str, float] = {}
        for pid in {r.product_id for r in reports}:
            product = self.repo.get_product_by_id(pid)
            prices[pid] = float(product.unit_price) if product else 0.0

        out = []
        for sid in soin_ids:
            treatment = self.repo.get_treatment(sid)
            if treatment is None:
                continue
            out.append(cost_analysis(reports, treatment, since, until, prices))
        return out
