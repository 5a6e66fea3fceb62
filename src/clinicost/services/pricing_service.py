from __future__ import annotations

import logging
from typing import Iterable, Optional

from clinicost.config import DEFAULT_SETTINGS, EngineSettings
from clinicost.domain.errors import NotFoundError, ValidationError
from clinicost.domain.models import MarginResult, PricingItem
from clinicost.domain.pricing import (
    HIGHLY_PROFITABLE,
    LOW,
    MODERATE,
    build_pricing_items,
    compute_margin,
    price_for_target_margin,
    profitability_label,
)

log = logging.getLogger(__name__)

_SORT_KEYS = {
    "name": lambda i: i.name.lower(),
    "margin": lambda i: i.margin_percentage,
    "price": lambda i: i.selling_price,
}


class PricingService:
    def __init__(self, catalog_service, repo=None, settings: EngineSettings = DEFAULT_SETTINGS):
        self.catalog = catalog_service
        self.repo = repo
        self.settings = settings

    def pricing_items(self) -> list[PricingItem]:
        return build_pricing_items(self.catalog.snapshot())

    def simulate(self, item: PricingItem, price: float) -> MarginResult:
        return compute_margin(price, item.consumables_cost)

    def recommend_price(self, item: PricingItem, target_percentage: float) -> int:
        return price_for_target_margin(item.consumables_cost, target_percentage, self.settings.target_margin_bounds)

    def filter_items(
        self,
        items: Iterable[PricingItem],
        search: str = "",
        item_type: Optional[str] = None,
        profitability: Optional[str] = None,
        sort_by: str = "margin",
        descending: bool = True,
    ) -> list[PricingItem]:
        if sort_by not in _SORT_KEYS:
            raise ValidationError(f"Unknown sort key: {sort_by}")
        term = (search or "").strip().lower()
        out = []
        for it in items:
            if term and term not in it.name.lower() and term not in it.description.lower():
                continue
            if item_type and it.type != item_type:
                continue
            if profitability and profitability_label(it.margin_percentage) != profitability:
                continue
            out.append(it)
        # stable sort keeps catalog order on ties
        out.sort(key=_SORT_KEYS[sort_by], reverse=descending)
        return out

    def profitability_summary(self, items: Iterable[PricingItem]) -> dict[str, int]:
        summary = {HIGHLY_PROFITABLE: 0, MODERATE: 0, LOW: 0}
        for it in items:
            summary[profitability_label(it.margin_percentage)] += 1
        return summary

    def update_selling_price(self, item: PricingItem, new_price: float) -> None:
        if new_price < 0:
            raise ValidationError("Price must be >= 0.")
        if self.repo is None:
            raise ValidationError("No writable catalog store configured.")
        if item.type == "soin":
            updated = self.repo.update_treatment_price(item.id, float(new_price))
        else:
            updated = self.repo.update_package_price(item.id, float(new_price))
        if not updated:
            raise NotFoundError(f"{item.type} {item.id} not found.")
        log.info("price_updated type=%s id=%s price=%.2f", item.type, item.id, float(new_price))
