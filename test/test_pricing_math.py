import pytest

from clinicost.domain.errors import ValidationError
from clinicost.domain.models import AggregatedConsumable, CatalogSnapshot, ExpectedConsumable, Package, Product, Treatment
from clinicost.domain.pricing import (
    UNKNOWN_PRODUCT_NAME,
    build_pricing_items,
    compute_margin,
    consumables_cost,
    price_for_target_margin,
    profitability_label,
    resolve_consumables,
)


def _catalog():
    p = Product("P", "Syringe", 1000.0, quantity=10, min_quantity=2)
    a = Treatment("A", "Lip filler", 5000.0, (ExpectedConsumable("P", 2),))
    b = Treatment("B", "Peel", 3000.0, (ExpectedConsumable("P", 1), ExpectedConsumable("X", 3)))
    pack = Package("F1", "Lip filler x2", ("A", "A"), prix_total=10000.0, prix_reduit=9000.0)
    return CatalogSnapshot(products=(p,), treatments=(a, b), packages=(pack,))


def test_package_with_repeated_treatment_margin_on_prix_reduit():
    items = {i.id: i for i in build_pricing_items(_catalog())}
    forfait = items["F1"]

    assert forfait.type == "forfait"
    assert [(c.product_id, c.quantity) for c in forfait.consumables] == [("P", 4)]
    assert forfait.consumables_cost == 4000
    assert forfait.selling_price == 9000
    assert forfait.margin == 5000
    assert forfait.margin_percentage == 56


def test_unknown_product_is_zero_cost_line():
    items = {i.id: i for i in build_pricing_items(_catalog())}
    peel = items["B"]

    unknown = [c for c in peel.consumables if c.product_id == "X"][0]
    assert unknown.name == UNKNOWN_PRODUCT_NAME
    assert unknown.unit_price == 0
    assert peel.consumables_cost == 1000


def test_treatments_listed_before_packages():
    items = build_pricing_items(_catalog())
    assert [i.type for i in items] == ["soin", "soin", "forfait"]


def test_consumables_cost_sums_quantity_times_unit_price():
    lines = [AggregatedConsumable("P", "P", 2, 1000.0), AggregatedConsumable("Q", "Q", 0.5, 300.0)]
    assert consumables_cost(lines) == 2150.0
    assert consumables_cost([]) == 0


def test_resolve_consumables_keeps_treatment_order():
    catalog = _catalog()
    resolved = resolve_consumables(catalog.treatment("B").expected_consumables, catalog)
    assert [c.product_id for c in resolved] == ["P", "X"]


@pytest.mark.parametrize(
    "price,cost",
    [(0, 0), (0, 500), (100, 0), (100, 250), (9000, 4000), (1, 1)],
)
def test_margin_is_price_minus_cost(price, cost):
    result = compute_margin(price, cost)
    assert result.margin == price - cost
    if price == 0:
        assert result.margin_percentage == 0
    assert result.margin_percentage <= 100


def test_margin_percentage_rounds_half_up():
    # 12.5% and 87.5% sit exactly on the half
    assert compute_margin(800, 700).margin_percentage == 13
    assert compute_margin(800, 100).margin_percentage == 88
    assert compute_margin(200, 199).margin_percentage == 1
    # 29 / 200 is exactly 14.5
    assert compute_margin(200, 171).margin_percentage == 15


def test_negative_margin_percentage_is_allowed():
    result = compute_margin(1000, 3000)
    assert result.margin == -2000
    assert result.margin_percentage == -200


def test_price_for_target_margin_example():
    price = price_for_target_margin(7500, 25)
    assert price == 10000
    m = compute_margin(price, 7500)
    assert m.margin == 2500
    assert m.margin_percentage == 25


@pytest.mark.parametrize("target", [0, 1, 15, 30, 50, 75, 80, 95, 99])
def test_recommended_price_reaches_target_within_one_point(target):
    cost = 123456
    price = price_for_target_margin(cost, target)
    assert abs(compute_margin(price, cost).margin_percentage - target) <= 1


def test_target_margin_outside_bounds_is_rejected():
    with pytest.raises(ValidationError):
        price_for_target_margin(1000, 100)
    with pytest.raises(ValidationError):
        price_for_target_margin(1000, -5)
    with pytest.raises(ValidationError):
        price_for_target_margin(1000, 85, bounds=(0, 80))


def test_zero_cost_recommends_zero():
    assert price_for_target_margin(0, 40) == 0


@pytest.mark.parametrize(
    "pct,label",
    [(100, "highly profitable"), (30, "highly profitable"), (29, "moderate"), (15, "moderate"), (14, "low"), (-20, "low")],
)
def test_profitability_bands(pct, label):
    assert profitability_label(pct) == label
