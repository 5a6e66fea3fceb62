"""
Severity policies for stock alerts.

A policy maps a measured value to one of ``SEVERITIES`` (or ``None`` when the
value does not warrant an alert). The classifier only depends on the
``ClassificationPolicy`` protocol so clinics can plug in their own bands.

Default bands
-------------
low_stock (ratio = quantity / min_quantity, only when quantity <= min_quantity):
    ratio <= 0.50 -> critical, <= 0.75 -> high, < 1.00 -> medium,
    exactly at the threshold -> low. A threshold of 0 with no stock is critical.

high_consumption / cost_variance (absolute mean variance percentage):
    >= 100 -> critical, >= 50 -> high, >= 25 -> medium, >= 10 -> low,
    below 10 -> no alert.

expiry_warning (days until expiry, within the 30 day lookahead):
    already expired -> critical, <= 7 -> high, <= 14 -> medium, else low.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


class ClassificationPolicy(Protocol):
    expiry_lookahead_days: int

    def low_stock_severity(self, quantity: float, min_quantity: float) -> Optional[str]: ...
    def consumption_severity(self, variance_percentage: float) -> Optional[str]: ...
    def consumption_threshold(self, variance_percentage: float) -> float: ...
    def expiry_severity(self, days_left: int) -> Optional[str]: ...


@dataclass(frozen=True)
class DefaultClassificationPolicy:
    low_stock_critical_ratio: float = 0.50
    low_stock_high_ratio: float = 0.75
    # (threshold %, severity) from the most severe down
    consumption_bands: tuple[tuple[float, str], ...] = (
        (100.0, "critical"),
        (50.0, "high"),
        (25.0, "medium"),
        (10.0, "low"),
    )
    expiry_lookahead_days: int = 30
    expiry_high_days: int = 7
    expiry_medium_days: int = 14

    def low_stock_severity(self, quantity: float, min_quantity: float) -> Optional[str]:
        """Classify a stock level against its reorder threshold.

        Returns ``None`` while stock stays above ``min_quantity``.
        """
        qty = float(quantity)
        threshold = float(min_quantity)
        if qty > threshold:
            return None
        if threshold <= 0:
            return "critical" if qty <= 0 else None
        ratio = qty / threshold
        if ratio <= self.low_stock_critical_ratio:
            return "critical"
        if ratio <= self.low_stock_high_ratio:
            return "high"
        if ratio < 1.0:
            return "medium"
        return "low"

    def consumption_severity(self, variance_percentage: float) -> Optional[str]:
        magnitude = abs(float(variance_percentage))
        for threshold, severity in self.consumption_bands:
            if magnitude >= threshold:
                return severity
        return None

    def consumption_threshold(self, variance_percentage: float) -> float:
        """Return the lower bound of the band the variance falls in, 0 below every band."""
        magnitude = abs(float(variance_percentage))
        for threshold, _ in self.consumption_bands:
            if magnitude >= threshold:
                return float(threshold)
        return 0.0

    def expiry_severity(self, days_left: int) -> Optional[str]:
        if days_left > self.expiry_lookahead_days:
            return None
        if days_left < 0:
            return "critical"
        if days_left <= self.expiry_high_days:
            return "high"
        if days_left <= self.expiry_medium_days:
            return "medium"
        return "low"

