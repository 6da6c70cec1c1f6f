"""Excel export of batch scan results and review flags."""

import logging
from pathlib import Path
from typing import List, Tuple

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .models import ExtractedReceipt
from .review import ReviewItem, make_snippet

logger = logging.getLogger(__name__)

HEADERS = ["File Name", "Merchant", "Date", "Total", "Subtotal", "Tax", "Category",
           "OCR Confidence", "Review Status", "Review Reason", "Raw Snippet"]
COLUMN_WIDTHS = [25, 25, 12, 12, 12, 10, 22, 14, 12, 40, 60]

ScanRow = Tuple[str, ExtractedReceipt]


class ExcelExporter:
    """Export scanned receipts and review items to Excel."""

    def __init__(self, output_path: Path):
        """
        Initialize Excel exporter.

        Args:
            output_path: Path for the output Excel file
        """
        self.output_path = Path(output_path)
        self.workbook = Workbook()

    def export_scans(self,
                     scans: List[ScanRow],
                     review_items: List[ReviewItem],
                     include_summary: bool = True):
        """
        Export scans and review data to a single consolidated sheet.

        Args:
            scans: (file_path, receipt) pairs
            review_items: Items needing review
            include_summary: Whether to add the per-category summary on top
        """
        try:
            # Remove default sheet
            if "Sheet" in self.workbook.sheetnames:
                self.workbook.remove(self.workbook["Sheet"])

            self._create_consolidated_sheet(scans, review_items, include_summary)

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.workbook.save(str(self.output_path))
            logger.info(f"Excel file exported to: {self.output_path}")

        except Exception as e:
            logger.error(f"Failed to export Excel file: {e}")
            raise

    def _create_consolidated_sheet(self, scans: List[ScanRow], review_items: List[ReviewItem],
                                   include_summary: bool):
        ws = self.workbook.create_sheet("All Receipts")
        current_row = 1

        if include_summary:
            current_row = self._add_summary_section(ws, scans, current_row)
            current_row += 2

        review_lookup = {}
        for item in review_items:
            name = Path(item.file_path).name
            if name in review_lookup:
                review_lookup[name] = f"{review_lookup[name]}; {item.reason}"
            else:
                review_lookup[name] = item.reason

        ws.cell(row=current_row, column=1, value="ALL RECEIPTS").font = Font(bold=True, size=14)
        current_row += 2

        for col, header in enumerate(HEADERS, 1):
            cell = ws.cell(row=current_row, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = PatternFill(start_color="E6E6E6", end_color="E6E6E6", fill_type="solid")
            cell.alignment = Alignment(horizontal="center")
        current_row += 1

        # OK rows first, then the ones needing review
        ordered = sorted(scans, key=lambda row: Path(row[0]).name in review_lookup)
        for file_path, receipt in ordered:
            file_name = Path(file_path).name
            reason = review_lookup.get(file_name)
            values = [
                file_name,
                receipt.merchant_name or '',
                receipt.date.isoformat() if receipt.date else '',
                float(receipt.total) if receipt.total is not None else None,
                float(receipt.subtotal) if receipt.subtotal is not None else None,
                float(receipt.tax) if receipt.tax is not None else None,
                receipt.category or '',
                round(receipt.overall_confidence, 1),
                "REVIEW" if reason else "OK",
                reason or '',
                make_snippet(receipt.raw_text) if reason else '',
            ]
            for col, value in enumerate(values, 1):
                ws.cell(row=current_row, column=col, value=value)
            current_row += 1

        for i, width in enumerate(COLUMN_WIDTHS, 1):
            ws.column_dimensions[get_column_letter(i)].width = width

        logger.info(f"Created consolidated sheet with {len(scans)} receipts and {len(review_items)} review items")

    def _add_summary_section(self, ws, scans: List[ScanRow], start_row: int) -> int:
        """Add summary statistics to the top of the consolidated sheet."""
        if not scans:
            ws.cell(row=start_row, column=1, value="No receipts to summarize")
            return start_row + 1

        df = pd.DataFrame([
            {
                'category': receipt.category or 'Uncategorized',
                'total': float(receipt.total) if receipt.total is not None else 0.0,
            }
            for _, receipt in scans
        ])

        ws.cell(row=start_row, column=1, value="SCAN SUMMARY").font = Font(bold=True, size=14)
        current_row = start_row + 2

        ws.cell(row=current_row, column=1, value="Receipts:").font = Font(bold=True)
        ws.cell(row=current_row, column=2, value=len(df))
        ws.cell(row=current_row, column=4, value="Total Amount:").font = Font(bold=True)
        ws.cell(row=current_row, column=5, value=round(float(df['total'].sum()), 2))
        ws.cell(row=current_row, column=7, value="Average Amount:").font = Font(bold=True)
        ws.cell(row=current_row, column=8, value=round(float(df['total'].mean()), 2))
        current_row += 2

        ws.cell(row=current_row, column=1, value="Category Breakdown:").font = Font(bold=True)
        current_row += 1
        for col, header in enumerate(["Category", "Count", "Amount"], 1):
            ws.cell(row=current_row, column=col, value=header).font = Font(bold=True)
        current_row += 1

        summary = self.category_summary(df)
        for category, data in summary.iterrows():
            ws.cell(row=current_row, column=1, value=category)
            ws.cell(row=current_row, column=2, value=int(data['count']))
            ws.cell(row=current_row, column=3, value=round(float(data['amount']), 2))
            current_row += 1

        return current_row

    @staticmethod
    def category_summary(df: pd.DataFrame) -> pd.DataFrame:
        """Count and amount per category, largest amount first."""
        summary = df.groupby('category')['total'].agg(['count', 'sum'])
        summary = summary.rename(columns={'sum': 'amount'})
        return summary.sort_values('amount', ascending=False)
