"""
Consumable roll-up and margin math for treatments (soins) and packages (forfaits).

Everything here is a pure function of its arguments. The display path is
tolerant: unresolved products become a zero-cost "unknown product" line and
zero selling prices yield a 0 % margin instead of raising.
"""

from __future__ import annotations

from math import ceil, floor
from typing import Iterable

from clinicost.domain.errors import ValidationError
from clinicost.domain.models import (
    UNKNOWN_PRODUCT_NAME,
    AggregatedConsumable,
    CatalogSnapshot,
    ExpectedConsumable,
    MarginResult,
    PricingItem,
)

HIGHLY_PROFITABLE = "highly profitable"
MODERATE = "moderate"
LOW = "low"

HIGH_MARGIN_THRESHOLD = 30
MODERATE_MARGIN_THRESHOLD = 15

DEFAULT_TARGET_BOUNDS = (0.0, 99.0)


def round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


def _resolve(totals: dict[str, float], catalog: CatalogSnapshot) -> list[AggregatedConsumable]:
    out: list[AggregatedConsumable] = []
    for product_id, qty in totals.items():
        product = catalog.product(product_id)
        out.append(
            AggregatedConsumable(
                product_id=product_id,
                name=product.name if product else UNKNOWN_PRODUCT_NAME,
                quantity=qty,
                unit_price=float(product.unit_price) if product else 0.0,
            )
        )
    return out


def resolve_consumables(expected: Iterable[ExpectedConsumable], catalog: CatalogSnapshot) -> list[AggregatedConsumable]:
    """Resolve a single treatment's expected consumables against the catalog."""
    totals: dict[str, float] = {}
    for c in expected:
        totals[c.product_id] = totals.get(c.product_id, 0) + c.quantity
    return _resolve(totals, catalog)


def aggregate_consumables(soin_ids: Iterable[str], catalog: CatalogSnapshot) -> list[AggregatedConsumable]:
    """Merge the expected consumables of every treatment in a package.

    Treatment ids are visited in order and may repeat; a treatment listed N
    times contributes its quantities N times. The first occurrence of a
    product fixes its position in the result. Unknown treatment ids add
    nothing, unknown product ids resolve to ``UNKNOWN_PRODUCT_NAME`` at a
    unit price of 0.
    """
    totals: dict[str, float] = {}
    for soin_id in soin_ids:
        treatment = catalog.treatment(soin_id)
        if treatment is None:
            continue
        for c in treatment.expected_consumables:
            totals[c.product_id] = totals.get(c.product_id, 0) + c.quantity
    return _resolve(totals, catalog)


def consumables_cost(consumables: Iterable[AggregatedConsumable]) -> float:
    return sum(c.quantity * c.unit_price for c in consumables)


def compute_margin(selling_price: float, cost: float) -> MarginResult:
    """Return the absolute margin and its integer percentage of the selling price.

    The percentage is rounded half-up and is 0 when ``selling_price`` is not
    positive, so it never exceeds 100.
    """
    margin = float(selling_price) - float(cost)
    if selling_price > 0:
        pct = round_half_up(margin * 100 / float(selling_price))
    else:
        pct = 0
    return MarginResult(margin=margin, margin_percentage=pct)


def price_for_target_margin(
    cost: float,
    target_percentage: float,
    bounds: tuple[float, float] = DEFAULT_TARGET_BOUNDS,
) -> int:
    """Smallest whole price whose margin over ``cost`` reaches ``target_percentage``.

    Computes ``ceil(cost / (1 - target / 100))``. Targets outside ``bounds``
    are rejected; the upper bound must stay below 100.
    """
    low, high = bounds
    if high >= 100:
        raise ValidationError("Target margin upper bound must be < 100.")
    if not (low <= target_percentage <= high):
        raise ValidationError(f"Target margin must be between {low:g} and {high:g}.")
    if cost <= 0:
        return 0
    # cost*100/(100-t) keeps integer inputs exact
    return int(ceil(float(cost) * 100 / (100 - float(target_percentage))))


def profitability_label(margin_percentage: float) -> str:
    if margin_percentage >= HIGH_MARGIN_THRESHOLD:
        return HIGHLY_PROFITABLE
    if margin_percentage >= MODERATE_MARGIN_THRESHOLD:
        return MODERATE
    return LOW


def _pricing_item(item_id, item_type, name, description, consumables, selling_price, active) -> PricingItem:
    cost = consumables_cost(consumables)
    m = compute_margin(selling_price, cost)
    return PricingItem(
        id=item_id,
        type=item_type,
        name=name,
        description=description or "",
        consumables=tuple(consumables),
        consumables_cost=cost,
        selling_price=float(selling_price),
        margin=m.margin,
        margin_percentage=m.margin_percentage,
        active=active,
    )


def build_pricing_items(catalog: CatalogSnapshot) -> list[PricingItem]:
    """Project every treatment, then every package, into a pricing view."""
    items: list[PricingItem] = []
    for t in catalog.treatments:
        consumables = resolve_consumables(t.expected_consumables, catalog)
        items.append(_pricing_item(t.id, "soin", t.name, t.description, consumables, t.price, t.active))
    for p in catalog.packages:
        consumables = aggregate_consumables(p.soin_ids, catalog)
        # prix_total is a list-price anchor only
        items.append(_pricing_item(p.id, "forfait", p.name, p.description, consumables, p.prix_reduit, p.active))
    return items
