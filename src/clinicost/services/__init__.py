from .catalog_service import CatalogService
from .pricing_service import PricingService
from .variance_service import VarianceService
from .alert_service import AlertService
from .export_service import ExportService
from .reporting_service import ReportingService

__all__ = [
    "CatalogService",
    "PricingService",
    "VarianceService",
    "AlertService",
    "ExportService",
    "ReportingService",
]
