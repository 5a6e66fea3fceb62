"""
Expected versus actual consumption math.

``compute_variance`` produces the figures frozen into a ConsumptionReport;
the remaining helpers summarise a list of reports for dashboards.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Mapping, Optional

from clinicost.domain.models import (
    ConsumptionReport,
    ConsumptionStats,
    ConsumptionTrend,
    CostAnalysis,
    OptimizationSuggestion,
    OverconsumedProduct,
    Treatment,
)
from clinicost.domain.pricing import compute_margin


def compute_variance(expected_quantity: float, actual_quantity: float, unit_price: float) -> tuple[float, float, float]:
    """Return ``(variance_quantity, variance_percentage, cost_impact)``.

    The percentage is relative to the expected quantity and is 0 when
    nothing was expected. The cost impact always follows the quantity delta.
    """
    expected = float(expected_quantity)
    actual = float(actual_quantity)
    variance_qty = actual - expected
    variance_pct = (variance_qty / expected * 100) if expected > 0 else 0.0
    cost_impact = variance_qty * float(unit_price)
    return variance_qty, variance_pct, cost_impact


def _group_by_product(reports: Iterable[ConsumptionReport]) -> dict[str, list[ConsumptionReport]]:
    grouped: dict[str, list[ConsumptionReport]] = {}
    for r in reports:
        grouped.setdefault(r.product_id, []).append(r)
    return grouped


def top_overconsumed_products(reports: Iterable[ConsumptionReport], limit: int = 5) -> list[OverconsumedProduct]:
    ranked = []
    for product_id, group in _group_by_product(reports).items():
        avg = sum(r.variance_percentage for r in group) / len(group)
        if avg <= 0:
            continue
        ranked.append(
            OverconsumedProduct(
                product_id=product_id,
                average_variance=avg,
                cost_impact=sum(r.cost_impact for r in group),
                report_count=len(group),
            )
        )
    ranked.sort(key=lambda p: p.average_variance, reverse=True)
    return ranked[: max(int(limit), 0)]


def consumption_stats(reports: Iterable[ConsumptionReport], top_n: int = 5) -> ConsumptionStats:
    reports = list(reports)
    total = len(reports)
    avg = (sum(r.variance_percentage for r in reports) / total) if total else 0.0
    return ConsumptionStats(
        total_reports=total,
        average_variance=avg,
        cost_impact=sum(r.cost_impact for r in reports),
        top_overconsumed_products=top_overconsumed_products(reports, top_n),
    )


def mean_variance_by_product(reports: Iterable[ConsumptionReport]) -> dict[str, tuple[float, float, int]]:
    """Map product id to ``(mean variance %, summed cost impact, report count)``."""
    out = {}
    for product_id, group in _group_by_product(reports).items():
        out[product_id] = (
            sum(r.variance_percentage for r in group) / len(group),
            sum(r.cost_impact for r in group),
            len(group),
        )
    return out


def consumption_trends(reports: Iterable[ConsumptionReport], since: Optional[date] = None) -> list[ConsumptionTrend]:
    selected = reports
    if since is not None:
        since_iso = since.isoformat()
        selected = [r for r in reports if str(r.report_date)[:10] >= since_iso]

    trends = []
    for product_id, group in _group_by_product(selected).items():
        total = sum(r.actual_quantity for r in group)
        trends.append(
            ConsumptionTrend(
                product_id=product_id,
                total_consumed=total,
                average_consumption=total / len(group),
                variance=sum(abs(r.variance_quantity) for r in group),
            )
        )
    return trends


def _suggestion(product_id: str, group: list[ConsumptionReport]) -> Optional[OptimizationSuggestion]:
    avg = sum(r.variance_percentage for r in group) / len(group)
    cost = sum(r.cost_impact for r in group)
    if cost > 0:
        if avg >= 50:
            priority = "high"
        elif avg >= 25:
            priority = "medium"
        else:
            priority = "low"
        return OptimizationSuggestion(
            product_id=product_id,
            type="reduce_overconsumption",
            description=f"{product_id} runs {avg:.1f}% over plan; review dosing with practitioners.",
            potential_savings=cost,
            priority=priority,
        )
    if cost < 0:
        return OptimizationSuggestion(
            product_id=product_id,
            type="adjust_expected_quantity",
            description=f"{product_id} runs {abs(avg):.1f}% under plan; lower the expected quantity.",
            potential_savings=0.0,
            priority="low",
        )
    return None


def cost_analysis(
    reports: Iterable[ConsumptionReport],
    treatment: Treatment,
    since: date,
    until: date,
    unit_prices: Mapping[str, float],
) -> CostAnalysis:
    """Compare a treatment's planned consumable cost with what was really used.

    Only reports for ``treatment`` dated within ``since``..``until`` count.
    Expected cost prices the expected quantities at ``unit_prices``; actual
    cost adds the cost impact frozen into each report. ``profit_margin`` is
    the margin percentage of the treatment price over all sessions against
    the actual cost.
    """
    since_iso, until_iso = since.isoformat(), until.isoformat()
    selected = [
        r for r in reports
        if r.soin_id == treatment.id and since_iso <= str(r.report_date)[:10] <= until_iso
    ]

    sessions = len({r.appointment_id for r in selected})
    expected_cost = sum(r.expected_quantity * float(unit_prices.get(r.product_id, 0.0)) for r in selected)
    cost_variance = sum(r.cost_impact for r in selected)
    actual_cost = expected_cost + cost_variance
    variance_pct = (cost_variance / expected_cost * 100) if expected_cost > 0 else 0.0

    suggestions = []
    for product_id, group in _group_by_product(selected).items():
        s = _suggestion(product_id, group)
        if s is not None:
            suggestions.append(s)
    suggestions.sort(key=lambda s: (-s.potential_savings, s.product_id))

    return CostAnalysis(
        soin_id=treatment.id,
        period_start=since_iso,
        period_end=until_iso,
        total_sessions=sessions,
        expected_cost=expected_cost,
        actual_cost=actual_cost,
        cost_variance=cost_variance,
        cost_variance_percentage=variance_pct,
        profit_margin=compute_margin(float(treatment.price) * sessions, actual_cost).margin_percentage,
        optimization_suggestions=tuple(suggestions),
    )
