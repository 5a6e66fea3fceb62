from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable

from clinicost.domain.models import PricingItem
from clinicost.domain.pricing import profitability_label

log = logging.getLogger(__name__)

PRICING_COLUMNS = [
    "type",
    "name",
    "description",
    "consumables",
    "consumables_cost",
    "selling_price",
    "margin",
    "margin_percentage",
    "status",
]


def _fmt_qty(q: float) -> str:
    return str(int(q)) if float(q).is_integer() else f"{q:g}"


def consumables_summary(item: PricingItem) -> str:
    return "; ".join(f"{c.name} x{_fmt_qty(c.quantity)}" for c in item.consumables)


class ExportService:
    def pricing_rows(self, items: Iterable[PricingItem]) -> list[dict]:
        return [
            {
                "type": it.type,
                "name": it.name,
                "description": it.description,
                "consumables": consumables_summary(it),
                "consumables_cost": round(it.consumables_cost, 2),
                "selling_price": round(it.selling_price, 2),
                "margin": round(it.margin, 2),
                "margin_percentage": it.margin_percentage,
                "status": profitability_label(it.margin_percentage),
            }
            for it in items
        ]

    def write_pricing_csv(self, path: Path | str, items: Iterable[PricingItem]) -> int:
        rows = self.pricing_rows(items)
        with open(path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=PRICING_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
        log.info("pricing_csv_exported path=%s rows=%s", path, len(rows))
        return len(rows)
