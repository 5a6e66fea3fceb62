from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from clinicost.domain.models import ConsumptionReport


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def create_consumption_reports(self, rows: Iterable[dict]) -> list[ConsumptionReport]: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for report writes.

    The repository already wraps each batch in one SQL transaction; this class
    stamps creation times so services stay persistence-agnostic.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def create_consumption_reports(self, rows: Iterable[dict]) -> list[ConsumptionReport]:
        created_at = datetime.now().replace(microsecond=0).isoformat(sep=" ")
        stamped = [{**row, "created_at": row.get("created_at") or created_at} for row in rows]
        return list(self.repo.create_consumption_reports(stamped))
