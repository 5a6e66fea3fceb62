from datetime import date
from pathlib import Path

import pytest
import requests

from conftest import seed_catalog

from clinicost.domain.errors import CatalogUnavailableError, NotFoundError, ValidationError
from clinicost.repositories.rest_catalog import RestCatalogStore, parse_consumables
from clinicost.repositories.sqlite_repo import SqliteRepository
from clinicost.services.catalog_service import CatalogService
from clinicost.services.pricing_service import PricingService


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, tables):
        self.tables = tables
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params, headers, timeout))
        table = url.rsplit("/", 1)[-1]
        return FakeResponse(self.tables[table])


class DownSession:
    def get(self, url, params=None, headers=None, timeout=None):
        raise requests.ConnectionError("network down")


REMOTE_TABLES = {
    "products": [
        {"id": "p1", "name": "Syringe", "unit_price": 1000, "quantity": 3, "min_quantity": 5, "expiry_date": "2026-04-01T00:00:00"},
        {"id": "p2", "name": "Old", "unit_price": 10, "quantity": 0, "min_quantity": 0, "is_active": False},
    ],
    "soins": [
        {"id": "s1", "nom": "Lip filler", "prix": 5000, "duree": 45, "expected_consumables": [{"productId": "p1", "quantity": 2}]},
        {"id": "s2", "nom": "Peel", "prix": 3000, "expected_consumables": None},
    ],
    "forfaits": [
        {"id": "f1", "nom": "Duo", "soin_ids": ["s1", "s1"], "prix_total": 10000, "prix_reduit": 9000, "is_active": True},
    ],
}


def test_rest_store_maps_rows():
    session = FakeSession(REMOTE_TABLES)
    store = RestCatalogStore("https://clinic.example/", api_key="k", session=session)

    snap = CatalogService(store).snapshot()

    assert [p.id for p in snap.products] == ["p1"]
    assert snap.product("p1").expiry_date == date(2026, 4, 1)
    assert snap.treatment("s1").expected_consumables[0].quantity == 2
    assert snap.treatment("s2").expected_consumables == ()
    assert snap.packages[0].soin_ids == ("s1", "s1")
    url, _, headers, timeout = session.calls[0]
    assert url == "https://clinic.example/rest/v1/products"
    assert headers["apikey"] == "k"
    assert timeout == 10.0


def test_rest_store_raises_unavailable_on_network_error():
    store = RestCatalogStore("https://clinic.example", session=DownSession())
    with pytest.raises(CatalogUnavailableError):
        store.list_active_products()


def test_catalog_falls_back_to_local_store(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "fallback.db")
    repo.init_db()
    seed_catalog(repo)
    remote = RestCatalogStore("https://clinic.example", session=DownSession())

    snap = CatalogService(remote, fallback=repo).snapshot()

    assert [p.id for p in snap.products] == ["P"]
    assert snap.packages[0].soin_ids == ("A", "A")


@pytest.mark.parametrize(
    "raw",
    [
        "not a list",
        [{"quantity": 1}],
        [{"productId": "p1", "quantity": 0}],
        [{"productId": "p1", "quantity": "abc"}],
        [{"productId": "p1", "quantity": 1}, {"product_id": "p1", "quantity": 2}],
    ],
)
def test_malformed_consumables_are_rejected_at_the_boundary(raw):
    with pytest.raises(ValidationError):
        parse_consumables(raw, "s1")


def _pricing(tmp_path: Path) -> tuple[SqliteRepository, PricingService]:
    repo = SqliteRepository(tmp_path / "pricing.db")
    repo.init_db()
    seed_catalog(repo)
    repo.add_treatment("B", "Consultation", 0.0)
    return repo, PricingService(CatalogService(repo), repo=repo)


def test_pricing_items_from_local_catalog(tmp_path: Path):
    _, svc = _pricing(tmp_path)
    items = {i.id: i for i in svc.pricing_items()}

    assert items["A"].consumables_cost == 2000
    assert items["A"].margin_percentage == 60
    assert items["F1"].consumables_cost == 4000
    assert items["F1"].margin == 5000
    assert items["B"].margin_percentage == 0


def test_simulate_and_recommend(tmp_path: Path):
    _, svc = _pricing(tmp_path)
    item = {i.id: i for i in svc.pricing_items()}["A"]

    assert svc.simulate(item, 4000).margin_percentage == 50
    assert svc.recommend_price(item, 50) == 4000
    with pytest.raises(ValidationError):
        svc.recommend_price(item, 100)


def test_filter_sort_and_summary(tmp_path: Path):
    _, svc = _pricing(tmp_path)
    items = svc.pricing_items()

    assert [i.id for i in svc.filter_items(items, sort_by="margin")] == ["A", "F1", "B"]
    assert [i.id for i in svc.filter_items(items, item_type="forfait")] == ["F1"]
    assert [i.id for i in svc.filter_items(items, search="volume")] == ["A"]
    assert [i.id for i in svc.filter_items(items, profitability="low")] == ["B"]
    assert [i.id for i in svc.filter_items(items, sort_by="price", descending=False)] == ["B", "A", "F1"]
    assert svc.profitability_summary(items) == {"highly profitable": 2, "moderate": 0, "low": 1}
    with pytest.raises(ValidationError):
        svc.filter_items(items, sort_by="colour")


def test_update_selling_price_writes_through(tmp_path: Path):
    repo, svc = _pricing(tmp_path)
    items = {i.id: i for i in svc.pricing_items()}

    svc.update_selling_price(items["F1"], 8000)
    svc.update_selling_price(items["A"], 6000)

    refreshed = {i.id: i for i in svc.pricing_items()}
    assert refreshed["F1"].selling_price == 8000
    assert refreshed["A"].selling_price == 6000
    with pytest.raises(ValidationError):
        svc.update_selling_price(items["A"], -1)


def test_update_price_of_missing_item(tmp_path: Path):
    repo, svc = _pricing(tmp_path)
    item = {i.id: i for i in svc.pricing_items()}["A"]
    conn = repo._conn()
    conn.execute("DELETE FROM treatments WHERE id='A'")
    conn.commit()
    conn.close()

    with pytest.raises(NotFoundError):
        svc.update_selling_price(item, 100)
