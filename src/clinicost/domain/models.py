from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


UNKNOWN_PRODUCT_NAME = "unknown product"

ALERT_TYPES = ("low_stock", "high_consumption", "expiry_warning", "cost_variance")
SEVERITIES = ("low", "medium", "high", "critical")
SEVERITY_RANK = {name: rank for rank, name in enumerate(SEVERITIES)}
APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "no-show")
PRICING_ITEM_TYPES = ("soin", "forfait")


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    unit_price: float
    quantity: int
    min_quantity: int
    unit: Optional[str] = None
    selling_price: Optional[float] = None
    category: Optional[str] = None
    expiry_date: Optional[date] = None
    active: int = 1


@dataclass(frozen=True)
class ExpectedConsumable:
    product_id: str
    quantity: float


@dataclass(frozen=True)
class Treatment:
    id: str
    name: str
    price: float
    expected_consumables: tuple[ExpectedConsumable, ...] = ()
    description: str = ""
    duration_minutes: int = 0
    active: int = 1


@dataclass(frozen=True)
class Package:
    id: str
    name: str
    soin_ids: tuple[str, ...]
    prix_total: float
    prix_reduit: float
    description: str = ""
    nb_seances: int = 1
    validite_mois: int = 0
    active: int = 1


@dataclass(frozen=True)
class Appointment:
    id: str
    soin_id: str
    status: str
    consumed_products: tuple[ExpectedConsumable, ...] = ()
    patient_id: Optional[str] = None
    scheduled_at: Optional[str] = None


@dataclass(frozen=True)
class CatalogSnapshot:
    """Products, treatments and packages fetched once for one workflow."""

    products: tuple[Product, ...] = ()
    treatments: tuple[Treatment, ...] = ()
    packages: tuple[Package, ...] = ()
    _products_by_id: dict = field(init=False, repr=False, compare=False)
    _treatments_by_id: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_products_by_id", {p.id: p for p in self.products})
        object.__setattr__(self, "_treatments_by_id", {t.id: t for t in self.treatments})

    def product(self, product_id: str) -> Optional[Product]:
        return self._products_by_id.get(product_id)

    def treatment(self, soin_id: str) -> Optional[Treatment]:
        return self._treatments_by_id.get(soin_id)


@dataclass(frozen=True)
class AggregatedConsumable:
    product_id: str
    name: str
    quantity: float
    unit_price: float

    @property
    def total_cost(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class MarginResult:
    margin: float
    margin_percentage: int


@dataclass(frozen=True)
class PricingItem:
    id: str
    type: str
    name: str
    description: str
    consumables: tuple[AggregatedConsumable, ...]
    consumables_cost: float
    selling_price: float
    margin: float
    margin_percentage: int
    active: int = 1


@dataclass(frozen=True)
class ConsumptionReport:
    id: int
    appointment_id: str
    soin_id: str
    product_id: str
    expected_quantity: float
    actual_quantity: float
    variance_quantity: float
    variance_percentage: float
    cost_impact: float
    report_date: str
    created_at: str


@dataclass(frozen=True)
class OverconsumedProduct:
    product_id: str
    average_variance: float
    cost_impact: float
    report_count: int


@dataclass(frozen=True)
class ConsumptionStats:
    total_reports: int
    average_variance: float
    cost_impact: float
    top_overconsumed_products: list[OverconsumedProduct]


@dataclass(frozen=True)
class ConsumptionTrend:
    product_id: str
    total_consumed: float
    average_consumption: float
    variance: float


@dataclass(frozen=True)
class OptimizationSuggestion:
    product_id: str
    type: str
    description: str
    potential_savings: float
    priority: str


@dataclass(frozen=True)
class CostAnalysis:
    soin_id: str
    period_start: str
    period_end: str
    total_sessions: int
    expected_cost: float
    actual_cost: float
    cost_variance: float
    cost_variance_percentage: float
    profit_margin: int
    optimization_suggestions: tuple[OptimizationSuggestion, ...] = ()


@dataclass(frozen=True)
class AlertDraft:
    product_id: str
    alert_type: str
    severity: str
    title: str
    message: str
    threshold_value: Optional[float]
    current_value: Optional[float]
    suggested_action: Optional[str]
    expires_at: Optional[str] = None


@dataclass(frozen=True)
class StockAlert:
    id: int
    product_id: str
    alert_type: str
    severity: str
    title: str
    message: str
    threshold_value: Optional[float]
    current_value: Optional[float]
    suggested_action: Optional[str]
    is_read: bool
    is_dismissed: bool
    expires_at: Optional[str]
    created_at: str
