from __future__ import annotations

import logging

from clinicost.domain.errors import CatalogUnavailableError
from clinicost.domain.models import CatalogSnapshot
from clinicost.repositories.contracts import CatalogStore

log = logging.getLogger("clinicost.catalog")


class CatalogService:
    def __init__(self, store: CatalogStore, fallback: CatalogStore | None = None):
        self.store = store
        self.fallback = fallback

    def _load(self, store: CatalogStore) -> CatalogSnapshot:
        return CatalogSnapshot(
            products=tuple(store.list_active_products()),
            treatments=tuple(store.list_active_treatments()),
            packages=tuple(store.list_packages()),
        )

    def snapshot(self) -> CatalogSnapshot:
        """Fetch products, treatments and packages once for the current workflow."""
        try:
            snap = self._load(self.store)
        except CatalogUnavailableError as e:
            if self.fallback is None:
                raise
            log.warning("catalog_fallback_local error=%s", e)
            snap = self._load(self.fallback)
        log.info(
            "catalog_snapshot products=%s treatments=%s packages=%s",
            len(snap.products), len(snap.treatments), len(snap.packages),
        )
        return snap
