from __future__ import annotations

from typing import Iterable, Optional, Protocol

from clinicost.domain.models import Appointment, ConsumptionReport, Package, Product, StockAlert, Treatment


class CatalogStore(Protocol):
    def list_active_products(self) -> list[Product]: ...
    def list_active_treatments(self) -> list[Treatment]: ...
    def list_packages(self) -> list[Package]: ...


class ReportStore(Protocol):
    def get_appointment(self, appointment_id: str) -> Optional[Appointment]: ...
    def get_treatment(self, treatment_id: str) -> Optional[Treatment]: ...
    def get_product_by_id(self, product_id: str) -> Optional[Product]: ...
    def create_consumption_report(self, row: dict) -> ConsumptionReport: ...
    def create_consumption_reports(self, rows: Iterable[dict]) -> list[ConsumptionReport]: ...
    def list_consumption_reports(
        self,
        limit: Optional[int] = None,
        soin_id: Optional[str] = None,
        product_id: Optional[str] = None,
        since_iso: Optional[str] = None,
    ) -> list[ConsumptionReport]: ...


class AlertStore(Protocol):
    def list_active_products(self) -> list[Product]: ...
    def list_consumption_reports(
        self,
        limit: Optional[int] = None,
        soin_id: Optional[str] = None,
        product_id: Optional[str] = None,
        since_iso: Optional[str] = None,
    ) -> list[ConsumptionReport]: ...
    def create_stock_alert(self, row: dict) -> StockAlert: ...
    def get_stock_alert(self, alert_id: int) -> Optional[StockAlert]: ...
    def list_stock_alerts(self, include_read: bool = False) -> list[StockAlert]: ...
    def open_alert_keys(self) -> set[tuple[str, str]]: ...
    def mark_alert_read(self, alert_id: int) -> bool: ...
    def dismiss_alert(self, alert_id: int) -> bool: ...
