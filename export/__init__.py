"""Export-Modul: Excel (openpyxl) für die Auswertung."""

from export.excel_export import AnalyticsExcelExporter

__all__ = ["AnalyticsExcelExporter"]
