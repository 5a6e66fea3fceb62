from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Callable

from clinicost.config import DEFAULT_SETTINGS, EngineSettings
from clinicost.domain.alerts import classify
from clinicost.domain.errors import NotFoundError
from clinicost.domain.models import StockAlert
from clinicost.domain.policies import ClassificationPolicy, DefaultClassificationPolicy
from clinicost.repositories.contracts import AlertStore

log = logging.getLogger("clinicost.alerts")


class AlertService:
    def __init__(
        self,
        repo: AlertStore,
        policy: ClassificationPolicy | None = None,
        settings: EngineSettings = DEFAULT_SETTINGS,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.settings = settings
        self.policy = policy or DefaultClassificationPolicy(
            low_stock_critical_ratio=settings.low_stock_critical_ratio,
            low_stock_high_ratio=settings.low_stock_high_ratio,
            expiry_lookahead_days=settings.alert_lookahead_days,
        )
        self.now = now

    def generate_alerts(self) -> list[StockAlert]:
        """Classify current stock and recent reports, then store new alerts.

        A draft is skipped while a non-dismissed alert of the same type
        already exists for the product.
        """
        now = self.now()
        today: date = now.date()
        since = (today - timedelta(days=self.settings.recent_reports_days)).isoformat()
        products = self.repo.list_active_products()
        reports = self.repo.list_consumption_reports(since_iso=since)

        drafts = classify(products, reports, self.policy, today)
        open_keys = self.repo.open_alert_keys()
        created_at = now.replace(microsecond=0).isoformat(sep=" ")

        created: list[StockAlert] = []
        for d in drafts:
            key = (d.product_id, d.alert_type)
            if key in open_keys:
                continue
            open_keys.add(key)
            created.append(self.repo.create_stock_alert({**asdict(d), "created_at": created_at}))

        log.info("alerts_generated drafts=%s created=%s", len(drafts), len(created))
        return created

    def get_alerts(self, include_read: bool = False) -> list[StockAlert]:
        return self.repo.list_stock_alerts(include_read)

    def _get(self, alert_id: int) -> StockAlert:
        alert = self.repo.get_stock_alert(int(alert_id))
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found.")
        return alert

    def mark_read(self, alert_id: int) -> bool:
        """Mark an alert read. Dismissed alerts are left untouched."""
        alert = self._get(alert_id)
        if alert.is_dismissed:
            return False
        changed = self.repo.mark_alert_read(alert.id)
        log.info("alert_read alert_id=%s", alert.id)
        return changed

    def dismiss(self, alert_id: int) -> bool:
        alert = self._get(alert_id)
        if alert.is_dismissed:
            return False
        changed = self.repo.dismiss_alert(alert.id)
        log.info("alert_dismissed alert_id=%s type=%s product=%s", alert.id, alert.alert_type, alert.product_id)
        return changed
