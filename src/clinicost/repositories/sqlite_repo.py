from __future__ import annotations

import shutil
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from clinicost.domain.errors import NotFoundError
from clinicost.domain.models import (
    Appointment,
    ConsumptionReport,
    ExpectedConsumable,
    Package,
    Product,
    StockAlert,
    Treatment,
)

_REPORT_COLUMNS = (
    "id, appointment_id, soin_id, product_id, expected_quantity, actual_quantity, "
    "variance_quantity, variance_percentage, cost_impact, report_date, created_at"
)
_ALERT_COLUMNS = (
    "id, product_id, alert_type, severity, title, message, threshold_value, current_value, "
    "suggested_action, is_read, is_dismissed, expires_at, created_at"
)
_SEVERITY_ORDER = (
    "CASE severity WHEN 'critical' THEN 3 WHEN 'high' THEN 2 WHEN 'medium' THEN 1 ELSE 0 END"
)


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_catalog),
                (2, self._migration_v2_reconciliation),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_catalog(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS products (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT,
                unit TEXT,
                unit_price REAL NOT NULL CHECK(unit_price >= 0),
                selling_price REAL,
                quantity INTEGER NOT NULL DEFAULT 0 CHECK(quantity >= 0),
                min_quantity INTEGER NOT NULL DEFAULT 0 CHECK(min_quantity >= 0),
                expiry_date TEXT,
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1))
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS treatments (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                duration_minutes INTEGER NOT NULL DEFAULT 0,
                price REAL NOT NULL CHECK(price >= 0),
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1))
            )
            """
        )

        # product_id is not a foreign key: unresolved products are tolerated at pricing time
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS treatment_consumables (
                treatment_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                quantity REAL NOT NULL CHECK(quantity > 0),
                position INTEGER NOT NULL,
                PRIMARY KEY(treatment_id, product_id),
                FOREIGN KEY(treatment_id) REFERENCES treatments(id) ON DELETE CASCADE
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS packages (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                prix_total REAL NOT NULL DEFAULT 0 CHECK(prix_total >= 0),
                prix_reduit REAL NOT NULL CHECK(prix_reduit >= 0),
                nb_seances INTEGER NOT NULL DEFAULT 1,
                validite_mois INTEGER NOT NULL DEFAULT 0,
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1))
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS package_treatments (
                package_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                soin_id TEXT NOT NULL,
                PRIMARY KEY(package_id, position),
                FOREIGN KEY(package_id) REFERENCES packages(id) ON DELETE CASCADE
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS appointments (
                id TEXT PRIMARY KEY,
                patient_id TEXT,
                soin_id TEXT NOT NULL,
                scheduled_at TEXT,
                status TEXT NOT NULL CHECK(status IN ('scheduled','completed','cancelled','no-show'))
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS appointment_consumables (
                appointment_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                quantity REAL NOT NULL CHECK(quantity >= 0),
                PRIMARY KEY(appointment_id, product_id),
                FOREIGN KEY(appointment_id) REFERENCES appointments(id) ON DELETE CASCADE
            )
            """
        )

    def _migration_v2_reconciliation(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS consumption_reports (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                appointment_id TEXT NOT NULL,
                soin_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                expected_quantity REAL NOT NULL CHECK(expected_quantity >= 0),
                actual_quantity REAL NOT NULL CHECK(actual_quantity >= 0),
                variance_quantity REAL NOT NULL,
                variance_percentage REAL NOT NULL,
                cost_impact REAL NOT NULL,
                report_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(appointment_id) REFERENCES appointments(id),
                FOREIGN KEY(soin_id) REFERENCES treatments(id),
                FOREIGN KEY(product_id) REFERENCES products(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TRIGGER IF NOT EXISTS consumption_reports_immutable
            BEFORE UPDATE ON consumption_reports
            BEGIN
                SELECT RAISE(ABORT, 'consumption reports are immutable');
            END
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS stock_alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                product_id TEXT NOT NULL,
                alert_type TEXT NOT NULL CHECK(alert_type IN ('low_stock','high_consumption','expiry_warning','cost_variance')),
                severity TEXT NOT NULL CHECK(severity IN ('low','medium','high','critical')),
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                threshold_value REAL,
                current_value REAL,
                suggested_action TEXT,
                is_read INTEGER NOT NULL DEFAULT 0 CHECK(is_read IN (0,1)),
                is_dismissed INTEGER NOT NULL DEFAULT 0 CHECK(is_dismissed IN (0,1)),
                expires_at TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TRIGGER IF NOT EXISTS stock_alerts_dismissed_terminal
            BEFORE UPDATE ON stock_alerts
            WHEN OLD.is_dismissed = 1 AND NEW.is_dismissed = 0
            BEGIN
                SELECT RAISE(ABORT, 'dismissed alerts cannot be restored');
            END
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_reports_product ON consumption_reports(product_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_alerts_open ON stock_alerts(is_dismissed, is_read)")

    # ---------- Row mapping ----------
    @staticmethod
    def _row_to_product(r) -> Product:
        return Product(
            id=str(r[0]),
            name=str(r[1]),
            category=r[2],
            unit=r[3],
            unit_price=float(r[4]),
            selling_price=(float(r[5]) if r[5] is not None else None),
            quantity=int(r[6]),
            min_quantity=int(r[7]),
            expiry_date=(date.fromisoformat(str(r[8])[:10]) if r[8] else None),
            active=int(r[9]),
        )

    @staticmethod
    def _row_to_report(r) -> ConsumptionReport:
        return ConsumptionReport(
            id=int(r[0]),
            appointment_id=str(r[1]),
            soin_id=str(r[2]),
            product_id=str(r[3]),
            expected_quantity=float(r[4]),
            actual_quantity=float(r[5]),
            variance_quantity=float(r[6]),
            variance_percentage=float(r[7]),
            cost_impact=float(r[8]),
            report_date=str(r[9]),
            created_at=str(r[10]),
        )

    @staticmethod
    def _row_to_alert(r) -> StockAlert:
        return StockAlert(
            id=int(r[0]),
            product_id=str(r[1]),
            alert_type=str(r[2]),
            severity=str(r[3]),
            title=str(r[4]),
            message=str(r[5]),
            threshold_value=(float(r[6]) if r[6] is not None else None),
            current_value=(float(r[7]) if r[7] is not None else None),
            suggested_action=r[8],
            is_read=bool(r[9]),
            is_dismissed=bool(r[10]),
            expires_at=r[11],
            created_at=str(r[12]),
        )

    # ---------- Products ----------
    def add_product(
        self,
        product_id: str,
        name: str,
        unit_price: float,
        quantity: int = 0,
        min_quantity: int = 0,
        unit: Optional[str] = None,
        selling_price: Optional[float] = None,
        category: Optional[str] = None,
        expiry_date: Optional[date] = None,
    ) -> str:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO products (id, name, category, unit, unit_price, selling_price, quantity, min_quantity, expiry_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                product_id, name, category, unit, float(unit_price),
                (float(selling_price) if selling_price is not None else None),
                int(quantity), int(min_quantity),
                (expiry_date.isoformat() if expiry_date else None),
            ),
        )
        conn.commit()
        conn.close()
        return product_id

    def list_active_products(self) -> list[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, name, category, unit, unit_price, selling_price, quantity, min_quantity, expiry_date, active
            FROM products
            WHERE active=1
            ORDER BY name
            """
        )
        rows = cur.fetchall()
        conn.close()
        return [self._row_to_product(r) for r in rows]

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, name, category, unit, unit_price, selling_price, quantity, min_quantity, expiry_date, active
            FROM products
            WHERE id=?
            """,
            (product_id,),
        )
        row = cur.fetchone()
        conn.close()
        return self._row_to_product(row) if row else None

    def update_product_stock(self, product_id: str, quantity: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE products SET quantity=? WHERE id=?", (int(quantity), product_id))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed

    def deactivate_product(self, product_id: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE products SET active=0 WHERE id=? AND active=1", (product_id,))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed

    # ---------- Treatments ----------
    def add_treatment(
        self,
        treatment_id: str,
        name: str,
        price: float,
        consumables: Iterable[ExpectedConsumable] = (),
        description: str = "",
        duration_minutes: int = 0,
        active: int = 1,
    ) -> str:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO treatments (id, name, description, duration_minutes, price, active)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (treatment_id, name, description, int(duration_minutes), float(price), int(active)),
            )
            for pos, c in enumerate(consumables):
                cur.execute(
                    """
                    INSERT INTO treatment_consumables (treatment_id, product_id, quantity, position)
                    VALUES (?, ?, ?, ?)
                    """,
                    (treatment_id, c.product_id, float(c.quantity), pos),
                )
            conn.commit()
            return treatment_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _consumables_by_treatment(self, cur: sqlite3.Cursor) -> dict[str, list[ExpectedConsumable]]:
        cur.execute("SELECT treatment_id, product_id, quantity FROM treatment_consumables ORDER BY treatment_id, position")
        out: dict[str, list[ExpectedConsumable]] = {}
        for tid, pid, qty in cur.fetchall():
            out.setdefault(str(tid), []).append(ExpectedConsumable(product_id=str(pid), quantity=float(qty)))
        return out

    def list_active_treatments(self) -> list[Treatment]:
        conn = self._conn()
        cur = conn.cursor()
        consumables = self._consumables_by_treatment(cur)
        cur.execute(
            """
            SELECT id, name, description, duration_minutes, price, active
            FROM treatments
            WHERE active=1
            ORDER BY name
            """
        )
        rows = cur.fetchall()
        conn.close()
        return [
            Treatment(
                id=str(r[0]),
                name=str(r[1]),
                description=str(r[2] or ""),
                duration_minutes=int(r[3]),
                price=float(r[4]),
                active=int(r[5]),
                expected_consumables=tuple(consumables.get(str(r[0]), [])),
            )
            for r in rows
        ]

    def get_treatment(self, treatment_id: str) -> Optional[Treatment]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "SELECT id, name, description, duration_minutes, price, active FROM treatments WHERE id=?",
            (treatment_id,),
        )
        r = cur.fetchone()
        if not r:
            conn.close()
            return None
        cur.execute(
            "SELECT product_id, quantity FROM treatment_consumables WHERE treatment_id=? ORDER BY position",
            (treatment_id,),
        )
        consumables = tuple(ExpectedConsumable(product_id=str(p), quantity=float(q)) for p, q in cur.fetchall())
        conn.close()
        return Treatment(
            id=str(r[0]),
            name=str(r[1]),
            description=str(r[2] or ""),
            duration_minutes=int(r[3]),
            price=float(r[4]),
            active=int(r[5]),
            expected_consumables=consumables,
        )

    def update_treatment_price(self, treatment_id: str, price: float) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE treatments SET price=? WHERE id=?", (float(price), treatment_id))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed

    # ---------- Packages ----------
    def add_package(
        self,
        package_id: str,
        name: str,
        soin_ids: Iterable[str],
        prix_total: float,
        prix_reduit: float,
        description: str = "",
        nb_seances: int = 1,
        validite_mois: int = 0,
        active: int = 1,
    ) -> str:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO packages (id, name, description, prix_total, prix_reduit, nb_seances, validite_mois, active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (package_id, name, description, float(prix_total), float(prix_reduit), int(nb_seances), int(validite_mois), int(active)),
            )
            for pos, soin_id in enumerate(soin_ids):
                cur.execute(
                    "INSERT INTO package_treatments (package_id, position, soin_id) VALUES (?, ?, ?)",
                    (package_id, pos, soin_id),
                )
            conn.commit()
            return package_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_packages(self) -> list[Package]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT package_id, soin_id FROM package_treatments ORDER BY package_id, position")
        soins: dict[str, list[str]] = {}
        for pid, sid in cur.fetchall():
            soins.setdefault(str(pid), []).append(str(sid))
        cur.execute(
            """
            SELECT id, name, description, prix_total, prix_reduit, nb_seances, validite_mois, active
            FROM packages
            ORDER BY name
            """
        )
        rows = cur.fetchall()
        conn.close()
        return [
            Package(
                id=str(r[0]),
                name=str(r[1]),
                description=str(r[2] or ""),
                prix_total=float(r[3]),
                prix_reduit=float(r[4]),
                nb_seances=int(r[5]),
                validite_mois=int(r[6]),
                active=int(r[7]),
                soin_ids=tuple(soins.get(str(r[0]), [])),
            )
            for r in rows
        ]

    def update_package_price(self, package_id: str, prix_reduit: float) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE packages SET prix_reduit=? WHERE id=?", (float(prix_reduit), package_id))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed

    # ---------- Appointments ----------
    def add_appointment(
        self,
        appointment_id: str,
        soin_id: str,
        status: str = "scheduled",
        consumed_products: Iterable[ExpectedConsumable] = (),
        patient_id: Optional[str] = None,
        scheduled_at: Optional[str] = None,
    ) -> str:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                "INSERT INTO appointments (id, patient_id, soin_id, scheduled_at, status) VALUES (?, ?, ?, ?, ?)",
                (appointment_id, patient_id, soin_id, scheduled_at, status),
            )
            for c in consumed_products:
                cur.execute(
                    "INSERT INTO appointment_consumables (appointment_id, product_id, quantity) VALUES (?, ?, ?)",
                    (appointment_id, c.product_id, float(c.quantity)),
                )
            conn.commit()
            return appointment_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "SELECT id, patient_id, soin_id, scheduled_at, status FROM appointments WHERE id=?",
            (appointment_id,),
        )
        r = cur.fetchone()
        if not r:
            conn.close()
            return None
        cur.execute(
            "SELECT product_id, quantity FROM appointment_consumables WHERE appointment_id=? ORDER BY rowid",
            (appointment_id,),
        )
        consumed = tuple(ExpectedConsumable(product_id=str(p), quantity=float(q)) for p, q in cur.fetchall())
        conn.close()
        return Appointment(
            id=str(r[0]),
            patient_id=r[1],
            soin_id=str(r[2]),
            scheduled_at=r[3],
            status=str(r[4]),
            consumed_products=consumed,
        )

    # ---------- Consumption reports ----------
    def _insert_report(self, cur: sqlite3.Cursor, row: dict) -> int:
        cur.execute(
            """
            INSERT INTO consumption_reports (
                appointment_id, soin_id, product_id, expected_quantity, actual_quantity,
                variance_quantity, variance_percentage, cost_impact, report_date, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["appointment_id"], row["soin_id"], row["product_id"],
                float(row["expected_quantity"]), float(row["actual_quantity"]),
                float(row["variance_quantity"]), float(row["variance_percentage"]), float(row["cost_impact"]),
                row["report_date"], row["created_at"],
            ),
        )
        return int(cur.lastrowid)

    def create_consumption_reports(self, rows: Iterable[dict]) -> list[ConsumptionReport]:
        conn = self._conn()
        cur = conn.cursor()
        try:
            ids = [self._insert_report(cur, row) for row in rows]
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return [r for r in (self.get_consumption_report(i) for i in ids) if r is not None]

    def create_consumption_report(self, row: dict) -> ConsumptionReport:
        return self.create_consumption_reports([row])[0]

    def get_consumption_report(self, report_id: int) -> Optional[ConsumptionReport]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_REPORT_COLUMNS} FROM consumption_reports WHERE id=?", (int(report_id),))
        row = cur.fetchone()
        conn.close()
        return self._row_to_report(row) if row else None

    def list_consumption_reports(
        self,
        limit: Optional[int] = None,
        soin_id: Optional[str] = None,
        product_id: Optional[str] = None,
        since_iso: Optional[str] = None,
    ) -> list[ConsumptionReport]:
        where, params = [], []
        if soin_id is not None:
            where.append("soin_id=?")
            params.append(soin_id)
        if product_id is not None:
            where.append("product_id=?")
            params.append(product_id)
        if since_iso is not None:
            where.append("report_date >= ?")
            params.append(since_iso)
        sql = f"SELECT {_REPORT_COLUMNS} FROM consumption_reports"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        conn = self._conn()
        cur = conn.cursor()
        cur.execute(sql, params)
        rows = cur.fetchall()
        conn.close()
        return [self._row_to_report(r) for r in rows]

    # ---------- Stock alerts ----------
    def create_stock_alert(self, row: dict) -> StockAlert:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO stock_alerts (
                product_id, alert_type, severity, title, message, threshold_value, current_value,
                suggested_action, expires_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["product_id"], row["alert_type"], row["severity"], row["title"], row["message"],
                row.get("threshold_value"), row.get("current_value"), row.get("suggested_action"),
                row.get("expires_at"), row["created_at"],
            ),
        )
        alert_id = int(cur.lastrowid)
        conn.commit()
        conn.close()
        alert = self.get_stock_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found after insert.")
        return alert

    def get_stock_alert(self, alert_id: int) -> Optional[StockAlert]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_ALERT_COLUMNS} FROM stock_alerts WHERE id=?", (int(alert_id),))
        row = cur.fetchone()
        conn.close()
        return self._row_to_alert(row) if row else None

    def list_stock_alerts(self, include_read: bool = False) -> list[StockAlert]:
        sql = f"SELECT {_ALERT_COLUMNS} FROM stock_alerts WHERE is_dismissed=0"
        if not include_read:
            sql += " AND is_read=0"
        sql += f" ORDER BY {_SEVERITY_ORDER} DESC, created_at DESC, id DESC"
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(sql)
        rows = cur.fetchall()
        conn.close()
        return [self._row_to_alert(r) for r in rows]

    def open_alert_keys(self) -> set[tuple[str, str]]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT DISTINCT product_id, alert_type FROM stock_alerts WHERE is_dismissed=0")
        keys = {(str(p), str(t)) for p, t in cur.fetchall()}
        conn.close()
        return keys

    def mark_alert_read(self, alert_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE stock_alerts SET is_read=1 WHERE id=? AND is_dismissed=0", (int(alert_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed

    def dismiss_alert(self, alert_id: int) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE stock_alerts SET is_dismissed=1 WHERE id=? AND is_dismissed=0", (int(alert_id),))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return changed
