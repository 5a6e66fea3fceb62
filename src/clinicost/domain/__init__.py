from .models import (
    AggregatedConsumable,
    AlertDraft,
    Appointment,
    CatalogSnapshot,
    ConsumptionReport,
    ExpectedConsumable,
    Package,
    PricingItem,
    Product,
    StockAlert,
    Treatment,
)
from .errors import (
    AppError,
    CatalogUnavailableError,
    DataIntegrityError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "Product",
    "ExpectedConsumable",
    "Treatment",
    "Package",
    "Appointment",
    "CatalogSnapshot",
    "AggregatedConsumable",
    "PricingItem",
    "ConsumptionReport",
    "StockAlert",
    "AlertDraft",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "DataIntegrityError",
    "CatalogUnavailableError",
]
