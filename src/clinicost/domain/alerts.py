from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from clinicost.domain.models import AlertDraft, ConsumptionReport, Product, SEVERITY_RANK
from clinicost.domain.policies import ClassificationPolicy, DefaultClassificationPolicy
from clinicost.domain.variance import mean_variance_by_product


def _low_stock(product: Product, severity: str) -> AlertDraft:
    return AlertDraft(
        product_id=product.id,
        alert_type="low_stock",
        severity=severity,
        title=f"Low stock: {product.name}",
        message=f"{product.name} has {product.quantity} {product.unit or 'unit(s)'} left (minimum {product.min_quantity}).",
        threshold_value=float(product.min_quantity),
        current_value=float(product.quantity),
        suggested_action=f"Reorder at least {max(product.min_quantity * 2 - product.quantity, 1)} {product.unit or 'unit(s)'}.",
    )


def _consumption(product_id: str, name: str, avg: float, cost: float, count: int, severity: str, threshold: float) -> AlertDraft:
    if avg > 0:
        return AlertDraft(
            product_id=product_id,
            alert_type="high_consumption",
            severity=severity,
            title=f"High consumption: {name}",
            message=f"{name} is used {avg:.1f}% above plan over {count} report(s); extra cost {cost:.2f}.",
            threshold_value=threshold,
            current_value=avg,
            suggested_action="Review the protocol with practitioners or update the expected quantity.",
        )
    return AlertDraft(
        product_id=product_id,
        alert_type="cost_variance",
        severity=severity,
        title=f"Cost basis overstated: {name}",
        message=f"{name} is used {abs(avg):.1f}% below plan over {count} report(s); cost difference {cost:.2f}.",
        threshold_value=threshold,
        current_value=avg,
        suggested_action="Lower the expected quantity so margins reflect real usage.",
    )


def _expiry(product: Product, days_left: int, severity: str) -> AlertDraft:
    if days_left < 0:
        message = f"{product.name} expired on {product.expiry_date.isoformat()}."
    else:
        message = f"{product.name} expires in {days_left} day(s) ({product.expiry_date.isoformat()})."
    return AlertDraft(
        product_id=product.id,
        alert_type="expiry_warning",
        severity=severity,
        title=f"Expiry warning: {product.name}",
        message=message,
        threshold_value=None,
        current_value=float(days_left),
        suggested_action="Use this batch first or remove it from stock.",
        expires_at=product.expiry_date.isoformat(),
    )


def classify(
    products: Iterable[Product],
    reports: Iterable[ConsumptionReport],
    policy: Optional[ClassificationPolicy] = None,
    today: Optional[date] = None,
) -> list[AlertDraft]:
    """Turn stock levels and recent consumption reports into alert drafts.

    Consumption alerts are computed per product from the mean variance
    percentage of its reports: positive means overconsumption
    (``high_consumption``), negative means the expected quantity is too high
    (``cost_variance``). Drafts come back most severe first.
    """
    policy = policy or DefaultClassificationPolicy()
    today = today or date.today()
    products = list(products)
    by_id = {p.id: p for p in products}
    drafts: list[AlertDraft] = []

    for p in products:
        severity = policy.low_stock_severity(p.quantity, p.min_quantity)
        if severity:
            drafts.append(_low_stock(p, severity))

        if p.expiry_date is not None:
            days_left = (p.expiry_date - today).days
            severity = policy.expiry_severity(days_left)
            if severity:
                drafts.append(_expiry(p, days_left, severity))

    for product_id, (avg, cost, count) in mean_variance_by_product(reports).items():
        if avg == 0:
            continue
        severity = policy.consumption_severity(avg)
        if not severity:
            continue
        product = by_id.get(product_id)
        name = product.name if product else product_id
        drafts.append(_consumption(product_id, name, avg, cost, count, severity, policy.consumption_threshold(avg)))

    drafts.sort(key=lambda d: SEVERITY_RANK[d.severity], reverse=True)
    return drafts
