from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clinicost.config import DEFAULT_SETTINGS, EngineSettings, get_app_paths
from clinicost.domain.policies import ClassificationPolicy
from clinicost.logging_config import setup_logging
from clinicost.repositories.rest_catalog import RestCatalogStore
from clinicost.repositories.sqlite_repo import SqliteRepository
from clinicost.services.alert_service import AlertService
from clinicost.services.catalog_service import CatalogService
from clinicost.services.export_service import ExportService
from clinicost.services.pricing_service import PricingService
from clinicost.services.reporting_service import ReportingService
from clinicost.services.variance_service import VarianceService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    catalog: CatalogService
    pricing: PricingService
    variance: VarianceService
    alerts: AlertService
    export: ExportService
    reporting: ReportingService
    settings: EngineSettings


def build_container(
    db_path: Path | str,
    catalog_url: Optional[str] = None,
    api_key: Optional[str] = None,
    policy: ClassificationPolicy | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> AppContainer:
    repo = SqliteRepository(db_path)
    repo.init_db()

    if catalog_url:
        remote = RestCatalogStore(catalog_url, api_key=api_key, timeout=settings.catalog_timeout_seconds)
        catalog = CatalogService(remote, fallback=repo)
    else:
        catalog = CatalogService(repo)

    pricing = PricingService(catalog, repo=repo, settings=settings)
    variance = VarianceService(repo, settings=settings)
    alerts = AlertService(repo, policy=policy, settings=settings)
    export = ExportService()
    reporting = ReportingService(pricing, variance, alerts)

    return AppContainer(
        repo=repo,
        catalog=catalog,
        pricing=pricing,
        variance=variance,
        alerts=alerts,
        export=export,
        reporting=reporting,
        settings=settings,
    )


def build_default_container(catalog_url: Optional[str] = None, api_key: Optional[str] = None) -> AppContainer:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)
    return build_container(paths.db_path, catalog_url=catalog_url, api_key=api_key)
