from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

import requests

from clinicost.domain.errors import CatalogUnavailableError, ValidationError
from clinicost.domain.models import ExpectedConsumable, Package, Product, Treatment

log = logging.getLogger("clinicost.catalog")


def parse_consumables(raw: Any, owner_id: str) -> tuple[ExpectedConsumable, ...]:
    """Validate a raw ``expected_consumables`` JSON list into typed records.

    Accepts ``productId`` or ``product_id`` keys. Rejects non-positive or
    non-numeric quantities and duplicate products.
    """
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError(f"Treatment {owner_id}: expected_consumables must be a list.")

    out: list[ExpectedConsumable] = []
    seen: set[str] = set()
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError(f"Treatment {owner_id}: consumable entry must be an object.")
        product_id = entry.get("productId", entry.get("product_id"))
        if not product_id:
            raise ValidationError(f"Treatment {owner_id}: consumable without product id.")
        try:
            qty = float(entry.get("quantity"))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Treatment {owner_id}: invalid quantity for {product_id}.") from e
        if qty <= 0:
            raise ValidationError(f"Treatment {owner_id}: quantity for {product_id} must be > 0.")
        if str(product_id) in seen:
            raise ValidationError(f"Treatment {owner_id}: product {product_id} listed twice.")
        seen.add(str(product_id))
        out.append(ExpectedConsumable(product_id=str(product_id), quantity=qty))
    return tuple(out)


def _opt_float(v: Any) -> Optional[float]:
    return float(v) if v is not None else None


def _opt_date(v: Any) -> Optional[date]:
    return date.fromisoformat(str(v)[:10]) if v else None


class RestCatalogStore:
    """Read-only catalog over a PostgREST (Supabase style) endpoint."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _fetch_rows(self, table: str, params: dict) -> list[dict]:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            r = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            log.warning("catalog_fetch_failed table=%s error=%s", table, e)
            raise CatalogUnavailableError(f"Could not load {table}: {e}") from e
        if not isinstance(data, list):
            raise CatalogUnavailableError(f"Unexpected payload for {table}: {type(data).__name__}")
        return data

    def list_active_products(self) -> list[Product]:
        rows = self._fetch_rows("products", {"select": "*", "order": "name"})
        products = []
        for row in rows:
            if row.get("is_active") is False:
                continue
            products.append(
                Product(
                    id=str(row["id"]),
                    name=str(row.get("name") or ""),
                    category=row.get("category"),
                    unit=row.get("unit"),
                    unit_price=float(row.get("unit_price") or 0),
                    selling_price=_opt_float(row.get("selling_price")),
                    quantity=int(row.get("quantity") or 0),
                    min_quantity=int(row.get("min_quantity") or 0),
                    expiry_date=_opt_date(row.get("expiry_date")),
                )
            )
        return products

    def list_active_treatments(self) -> list[Treatment]:
        rows = self._fetch_rows("soins", {"select": "*", "is_active": "eq.true", "order": "nom"})
        return [
            Treatment(
                id=str(row["id"]),
                name=str(row.get("nom") or ""),
                description=str(row.get("description") or ""),
                duration_minutes=int(row.get("duree") or 0),
                price=float(row.get("prix") or 0),
                expected_consumables=parse_consumables(row.get("expected_consumables"), str(row["id"])),
            )
            for row in rows
        ]

    def list_packages(self) -> list[Package]:
        rows = self._fetch_rows("forfaits", {"select": "*", "order": "ordre"})
        return [
            Package(
                id=str(row["id"]),
                name=str(row.get("nom") or ""),
                description=str(row.get("description") or ""),
                soin_ids=tuple(str(s) for s in (row.get("soin_ids") or [])),
                prix_total=float(row.get("prix_total") or 0),
                prix_reduit=float(row.get("prix_reduit") or 0),
                nb_seances=int(row.get("nb_seances") or 1),
                validite_mois=int(row.get("validite_mois") or 0),
                active=1 if row.get("is_active", True) else 0,
            )
            for row in rows
        ]
