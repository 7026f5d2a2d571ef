"""Excel export of the monthly sales forecast."""

import logging
import os
from datetime import date

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill

logger = logging.getLogger(__name__)

MONTH_SHEET_COLUMNS = {
    "month": "Month",
    "actual_qty": "Actual Qty",
    "forecast_qty": "Forecast Qty",
    "actual_amount": "Actual Amount",
    "forecast_amount": "Forecast Amount",
    "actual_customer_count": "Actual Customers",
    "forecast_customer_count": "Forecast Customers",
}
DAY_SHEET_NOTICE = "This view only holds monthly totals. See the shipment list for daily detail."


class ExcelGenerator:
    """Writes forecast workbooks with a 'Month' sheet and a 'Day' sheet."""

    def __init__(self, output_dir: str = "exports"):
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

    def _auto_adjust_columns(self, worksheet):
        """Size each column to its longest cell value."""
        for column in worksheet.columns:
            longest = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            worksheet.column_dimensions[column[0].column_letter].width = longest + 2

    def _style_header_row(self, worksheet, color: str = "4472C4"):
        fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
        font = Font(bold=True, color="FFFFFF")
        for cell in worksheet[1]:
            cell.fill = fill
            cell.font = font
            cell.alignment = Alignment(horizontal="center", vertical="center")

    @staticmethod
    def build_month_sheet(series: pd.DataFrame) -> pd.DataFrame:
        """Month sheet rows: actual/forecast quantity, amount and customers, blanks as 0."""
        sheet = pd.DataFrame({"month": series["month"].astype(str)})
        for col in list(MONTH_SHEET_COLUMNS)[1:]:
            values = series[col] if col in series.columns else 0
            sheet[col] = pd.to_numeric(values, errors="coerce")
            sheet[col] = sheet[col].fillna(0)
        return sheet.rename(columns=MONTH_SHEET_COLUMNS)

    def create_forecast_export(self, series: pd.DataFrame, sku: str, export_date: date | None = None) -> str:
        """
        Write `sales_forecast_<sku>_<date>.xlsx` for a monthly (or yearly) series.

        The 'Day' sheet only carries a notice; no per-day breakdown is exported.
        """
        if series is None or series.empty:
            raise ValueError("No data to export")

        export_date = export_date or date.today()
        filename = f"sales_forecast_{sku}_{export_date.isoformat()}.xlsx"
        filepath = os.path.join(self.output_dir, filename)

        month_sheet = self.build_month_sheet(series)
        day_sheet = pd.DataFrame([{"Notice": DAY_SHEET_NOTICE}])

        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            month_sheet.to_excel(writer, sheet_name="Month", index=False)
            day_sheet.to_excel(writer, sheet_name="Day", index=False)

            for name, color in (("Month", "70AD47"), ("Day", "9C6500")):
                worksheet = writer.sheets[name]
                self._style_header_row(worksheet, color=color)
                self._auto_adjust_columns(worksheet)

        logger.info("Forecast export written: %s", filepath)
        return filepath
