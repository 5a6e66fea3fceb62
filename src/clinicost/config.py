from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class EngineSettings:
    target_margin_min: float = 0.0
    target_margin_max: float = 99.0
    alert_lookahead_days: int = 30
    recent_reports_days: int = 30
    top_overconsumed_limit: int = 5
    low_stock_critical_ratio: float = 0.50
    low_stock_high_ratio: float = 0.75
    catalog_timeout_seconds: float = 10.0

    @property
    def target_margin_bounds(self) -> tuple[float, float]:
        return (self.target_margin_min, self.target_margin_max)


DEFAULT_SETTINGS = EngineSettings()


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "ClinicCost") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "clinic.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)
