from __future__ import annotations

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from clinicost.services.export_service import consumables_summary
from clinicost.domain.pricing import profitability_label


class ReportingService:
    def __init__(self, pricing_service, variance_service, alert_service):
        self.pricing = pricing_service
        self.variance = variance_service
        self.alerts = alert_service

    def export_reconciliation_excel(self, path: str) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def pct(cell):
            cell.number_format = "0.0"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        items = self.pricing.pricing_items()
        stats = self.variance.stats()
        reports = self.variance.list_reports()
        alerts = self.alerts.get_alerts(include_read=True)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Cost & consumption summary"
        ws["A1"].font = Font(bold=True, size=14)

        summary = self.pricing.profitability_summary(items)
        rows = [
            ("Priced services", len(items), "int"),
            ("Highly profitable", summary["highly profitable"], "int"),
            ("Moderate", summary["moderate"], "int"),
            ("Low margin", summary["low"], "int"),
            ("Consumption reports", stats.total_reports, "int"),
            ("Average variance %", float(stats.average_variance), "pct"),
            ("Total cost impact", float(stats.cost_impact), "money"),
            ("Active alerts", len(alerts), "int"),
        ]
        start_row = 3
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])
            elif kind == "pct":
                pct(ws[f"B{r}"])

        top_row = start_row + len(rows) + 1
        ws[f"A{top_row}"] = "Top overconsumed products"
        ws[f"A{top_row}"].font = Font(bold=True)
        for i, p in enumerate(stats.top_overconsumed_products, start=1):
            ws[f"A{top_row + i}"] = p.product_id
            ws[f"B{top_row + i}"] = float(p.average_variance)
            ws[f"C{top_row + i}"] = float(p.cost_impact)
            pct(ws[f"B{top_row + i}"])
            money(ws[f"C{top_row + i}"])
        set_widths(ws, {"A": 28, "B": 18, "C": 18})

        # -------- 2) Pricing --------
        ws2 = wb.create_sheet("Pricing")
        ws2.append([
            "Type", "Name", "Consumables", "Consumables Cost",
            "Selling Price", "Margin", "Margin %", "Status",
        ])
        bold_row(ws2, 1)
        for out_row, it in enumerate(items, start=2):
            ws2.append([
                it.type, it.name, consumables_summary(it), float(it.consumables_cost),
                float(it.selling_price), float(it.margin), int(it.margin_percentage),
                profitability_label(it.margin_percentage),
            ])
            money(ws2[f"D{out_row}"])
            money(ws2[f"E{out_row}"])
            money(ws2[f"F{out_row}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 10, "B": 30, "C": 40, "D": 18, "E": 16, "F": 16, "G": 10, "H": 18})
        if ws2.max_row >= 2:
            add_table(ws2, "PricingDetail", 1, 1, ws2.max_row, 8)

        # -------- 3) Consumption --------
        ws3 = wb.create_sheet("Consumption")
        ws3.append([
            "Report ID", "Date", "Appointment", "Treatment", "Product",
            "Expected", "Actual", "Variance", "Variance %", "Cost Impact",
        ])
        bold_row(ws3, 1)
        for out_row, r in enumerate(reports, start=2):
            ws3.append([
                int(r.id), r.report_date, r.appointment_id, r.soin_id, r.product_id,
                float(r.expected_quantity), float(r.actual_quantity),
                float(r.variance_quantity), float(r.variance_percentage), float(r.cost_impact),
            ])
            pct(ws3[f"I{out_row}"])
            money(ws3[f"J{out_row}"])
        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 10, "B": 12, "C": 16, "D": 16, "E": 16, "F": 10, "G": 10, "H": 10, "I": 12, "J": 14})
        if ws3.max_row >= 2:
            add_table(ws3, "ConsumptionDetail", 1, 1, ws3.max_row, 10)

        # -------- 4) Alerts --------
        ws4 = wb.create_sheet("Alerts")
        ws4.append(["Alert ID", "Created", "Severity", "Type", "Product", "Title", "Suggested Action", "Read"])
        bold_row(ws4, 1)
        for a in alerts:
            ws4.append([
                int(a.id), a.created_at, a.severity, a.alert_type, a.product_id,
                a.title, a.suggested_action or "", "yes" if a.is_read else "no",
            ])
        ws4.freeze_panes = "A2"
        set_widths(ws4, {"A": 10, "B": 20, "C": 10, "D": 18, "E": 16, "F": 34, "G": 50, "H": 6})

        wb.save(path)
