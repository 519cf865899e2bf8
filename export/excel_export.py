"""Excel-Export der Auswertung (openpyxl)."""

from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from analysis.analytics import AggregateReport
from models.booking import Booking

# ─── Farbpalette (RRGGBB, ohne #) ─────────────────────────────────────────────

COLORS: dict[str, str] = {
    "header": "4472C4",
    "high":   "CCFFCC",
    "medium": "FFFFCC",
    "low":    "FFCCCC",
    "zebra":  "F5F5F5",
}


def today_str() -> str:
    """Gibt das heutige Datum als DD.MM.YYYY zurück."""
    return date.today().strftime("%d.%m.%Y")


def rate_color(rate: float) -> str:
    """Ampelfarbe für eine Auslastung in Prozent."""
    if rate >= 60:
        return COLORS["high"]
    if rate >= 30:
        return COLORS["medium"]
    return COLORS["low"]


class AnalyticsExcelExporter:
    """Exportiert einen AggregateReport in eine Excel-Datei.

    Sheets: Übersicht, Raumauslastung, Zeitfenster, Woche, Nutzer und
    optional Buchungen (Rohliste).
    """

    ROW_HEADER_H = 22

    def __init__(self, report: AggregateReport, organization_name: str = ""):
        self.report = report
        self.organization_name = organization_name

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def export(self, output_path: Path, bookings: Optional[list[Booking]] = None) -> Path:
        """Erstellt die Excel-Datei mit allen Sheets."""
        from openpyxl import Workbook
        wb = Workbook()
        wb.remove(wb.active)   # Leeres Standard-Sheet entfernen

        self._sheet_uebersicht(wb)
        self._sheet_raeume(wb)
        self._sheet_zeitfenster(wb)
        self._sheet_woche(wb)
        self._sheet_nutzer(wb)
        if bookings is not None:
            self._sheet_buchungen(wb, bookings)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)
        return output_path

    # ─── Style-Helpers ────────────────────────────────────────────────────────

    def _fill(self, hex_color: str):
        from openpyxl.styles import PatternFill
        return PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")

    def _thin_border(self):
        from openpyxl.styles import Border, Side
        s = Side(border_style="thin", color="BBBBBB")
        return Border(left=s, right=s, top=s, bottom=s)

    def _write_header(self, ws, row: int, headers: list[str]) -> None:
        from openpyxl.styles import Alignment, Font
        fill = self._fill(COLORS["header"])
        border = self._thin_border()
        for col, text in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=text)
            cell.fill = fill
            cell.font = Font(bold=True, color="FFFFFF", size=10)
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = border
        ws.row_dimensions[row].height = self.ROW_HEADER_H

    def _write_row(self, ws, row: int, values: list) -> None:
        border = self._thin_border()
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value).border = border

    def _set_widths(self, ws, widths: list[int]) -> None:
        from openpyxl.utils import get_column_letter
        for col, width in enumerate(widths, 1):
            ws.column_dimensions[get_column_letter(col)].width = width

    # ─── Sheet: Übersicht ─────────────────────────────────────────────────────

    def _sheet_uebersicht(self, wb) -> None:
        from openpyxl.styles import Font

        r = self.report
        ws = wb.create_sheet(title="Übersicht")
        title = "Raumauslastung"
        if self.organization_name:
            title += f" – {self.organization_name}"
        ws.cell(row=1, column=1, value=title).font = Font(bold=True, size=14)
        ws.cell(row=2, column=1, value=f"Erstellt: {today_str()}")

        last_day = r.date_range.end - timedelta(days=1)
        kpis = [
            ("Zeitraum (UTC)", f"{r.date_range.start:%d.%m.%Y} – {last_day:%d.%m.%Y}"),
            ("Aktive Räume", r.total_rooms),
            ("Buchungen", r.total_bookings),
            ("Ø Auslastung (%)", r.utilization_rate),
            ("Spitzenstunde", r.peak_usage),
        ]
        self._write_header(ws, 4, ["Kennzahl", "Wert"])
        for i, (name, value) in enumerate(kpis, 5):
            self._write_row(ws, i, [name, value])
        ws.cell(row=8, column=2).fill = self._fill(rate_color(r.utilization_rate))
        self._set_widths(ws, [24, 28])

    # ─── Sheet: Raumauslastung ────────────────────────────────────────────────

    def _sheet_raeume(self, wb) -> None:
        ws = wb.create_sheet(title="Raumauslastung")
        self._write_header(ws, 1, [
            "ID", "Raum", "Ort", "Kapazität", "Buchungen", "Stunden", "Auslastung (%)",
        ])
        for row, entry in enumerate(self.report.room_utilization, 2):
            self._write_row(ws, row, [
                entry.room_id, entry.room_name, entry.location, entry.capacity,
                entry.total_bookings, entry.total_booked_hours, entry.utilization_rate,
            ])
            ws.cell(row=row, column=7).fill = self._fill(rate_color(entry.utilization_rate))
        ws.freeze_panes = "A2"
        self._set_widths(ws, [8, 28, 22, 10, 11, 9, 15])

    # ─── Sheet: Zeitfenster ───────────────────────────────────────────────────

    def _sheet_zeitfenster(self, wb) -> None:
        from openpyxl.styles import Font

        ws = wb.create_sheet(title="Zeitfenster")
        ws.cell(row=1, column=1, value="Beliebteste Zeitfenster").font = Font(bold=True, size=11)
        self._write_header(ws, 2, ["Stunde (UTC)", "Zeitfenster", "Buchungen"])
        row = 3
        for slot in self.report.popular_time_slots:
            self._write_row(ws, row, [slot.hour, slot.time_slot, slot.count])
            row += 1

        row += 1
        ws.cell(row=row, column=1, value="Buchungsarten").font = Font(bold=True, size=11)
        row += 1
        self._write_header(ws, row, ["Art", "Anzahl", "Anteil (%)"])
        row += 1
        for freq in self.report.booking_frequency:
            self._write_row(ws, row, [freq.type, freq.count, freq.percentage])
            row += 1
        self._set_widths(ws, [20, 24, 12])

    # ─── Sheet: Woche ─────────────────────────────────────────────────────────

    def _sheet_woche(self, wb) -> None:
        ws = wb.create_sheet(title="Woche")
        self._write_header(ws, 1, ["Tag", "Datum", "Auslastung (%)"])
        for row, day in enumerate(self.report.weekly_utilization, 2):
            self._write_row(ws, row, [day.day, day.date.strftime("%d.%m.%Y"), day.utilization])
            ws.cell(row=row, column=3).fill = self._fill(rate_color(day.utilization))
        self._set_widths(ws, [8, 12, 15])

    # ─── Sheet: Nutzer ────────────────────────────────────────────────────────

    def _sheet_nutzer(self, wb) -> None:
        ws = wb.create_sheet(title="Nutzer")
        self._write_header(ws, 1, ["Nutzer", "Buchungen", "Stunden"])
        for row, user in enumerate(self.report.top_users, 2):
            self._write_row(ws, row, [user.owner_id, user.total_bookings, user.total_hours])
        self._set_widths(ws, [20, 11, 9])

    # ─── Sheet: Buchungen ─────────────────────────────────────────────────────

    def _sheet_buchungen(self, wb, bookings: list[Booking]) -> None:
        ws = wb.create_sheet(title="Buchungen")
        self._write_header(ws, 1, [
            "ID", "Raum", "Nutzer", "Beginn (UTC)", "Ende (UTC)",
            "Zweck", "Teilnehmer", "Status", "Serie",
        ])
        zebra = self._fill(COLORS["zebra"])
        for row, b in enumerate(sorted(bookings, key=lambda b: (b.start_time, b.id)), 2):
            self._write_row(ws, row, [
                b.id[:8], b.room_id, b.owner_id,
                b.start_time.strftime("%d.%m.%Y %H:%M"),
                b.end_time.strftime("%d.%m.%Y %H:%M"),
                b.purpose, b.attendees, b.status.value,
                (b.recurrence_group_id or "")[:8],
            ])
            if row % 2 == 0:
                for col in range(1, 10):
                    ws.cell(row=row, column=col).fill = zebra
        ws.freeze_panes = "A2"
        self._set_widths(ws, [10, 8, 14, 17, 17, 28, 11, 11, 10])
