"""
Statement export - formatted XLSX wallet statements (openpyxl)
"""
import io
from datetime import datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter


# ==================== Styles ====================

_HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
_HEADER_FONT = Font(name="Arial", bold=True, color="FFFFFF", size=11)
_TITLE_FONT = Font(name="Arial", bold=True, size=14)
_SUBTITLE_FONT = Font(name="Arial", bold=False, size=10, color="666666")
_TOTAL_FONT = Font(name="Arial", bold=True, size=11)
_TOTAL_FILL = PatternFill(start_color="D9E2F3", end_color="D9E2F3", fill_type="solid")
_AMOUNT_FORMAT = "#,##0"

_THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_TEXT_ALIGN = Alignment(horizontal="left", vertical="center", wrap_text=True)
_NUMBER_ALIGN = Alignment(horizontal="right", vertical="center")

STATEMENT_HEADERS = [
    "Date", "Type", "Category", "Description", "Amount", "Balance after", "Status",
]


def _auto_fit_columns(ws: Any) -> None:
    """Size columns to their content, between 10 and 40 characters"""
    for col_cells in ws.columns:
        max_length = 0
        col_letter = get_column_letter(col_cells[0].column)
        for cell in col_cells:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max(max_length + 4, 10), 40)


def _apply_row_style(ws: Any, row: int, col_count: int, font=None, fill=None) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        if font is not None:
            cell.font = font
        if fill is not None:
            cell.fill = fill
        cell.alignment = _TEXT_ALIGN
        cell.border = _THIN_BORDER


def _format_amount_cell(cell: Any) -> None:
    cell.number_format = _AMOUNT_FORMAT
    cell.alignment = _NUMBER_ALIGN


# Excel treats cells starting with these as formulas (formula / CSV injection)
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _sanitize_text(value: str) -> str:
    """Prefix a single quote so Excel shows the text instead of evaluating it"""
    if isinstance(value, str) and value and value[0] in _FORMULA_PREFIXES:
        return f"'{value}"
    return value


def generate_statement_excel(
    account: dict[str, Any],
    entries: list[dict[str, Any]],
    generated_at: datetime,
) -> bytes:
    """
    Build a wallet statement workbook.

    Args:
        account: id, name, email, wallet_balance, total_earnings, total_spent
        entries: ledger entries in creation order (created_at, type, category,
                 description, amount, balance_after, status)
        generated_at: timestamp shown in the subtitle

    Returns:
        bytes - XLSX file content
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Statement"

    ws.cell(row=1, column=1, value=_sanitize_text(f"Wallet statement - {account['name']}")).font = _TITLE_FONT
    ws.cell(
        row=2,
        column=1,
        value=_sanitize_text(
            f"{account['email']} | generated {generated_at.strftime('%Y-%m-%d %H:%M')} UTC"
        ),
    ).font = _SUBTITLE_FONT

    header_row = 4
    col_count = len(STATEMENT_HEADERS)
    for col, header in enumerate(STATEMENT_HEADERS, 1):
        ws.cell(row=header_row, column=col, value=header)
    _apply_row_style(ws, header_row, col_count, font=_HEADER_FONT, fill=_HEADER_FILL)

    total_credit = 0
    total_debit = 0
    row = header_row + 1
    for entry in entries:
        created_at = entry.get("created_at")
        ws.cell(row=row, column=1, value=created_at.strftime("%Y-%m-%d %H:%M") if created_at else "")
        ws.cell(row=row, column=2, value=entry["type"])
        ws.cell(row=row, column=3, value=entry["category"])
        ws.cell(row=row, column=4, value=_sanitize_text(entry.get("description") or ""))
        amount_cell = ws.cell(row=row, column=5, value=entry["amount"])
        balance_cell = ws.cell(row=row, column=6, value=entry["balance_after"])
        ws.cell(row=row, column=7, value=entry["status"])
        _apply_row_style(ws, row, col_count)
        _format_amount_cell(amount_cell)
        _format_amount_cell(balance_cell)

        if entry["type"] == "CREDIT":
            total_credit += entry["amount"]
        else:
            total_debit += entry["amount"]
        row += 1

    totals = (
        ("Total credits", total_credit),
        ("Total debits", total_debit),
        ("Current balance", account["wallet_balance"]),
    )
    for label, value in totals:
        ws.cell(row=row, column=4, value=label)
        _format_amount_cell(ws.cell(row=row, column=5, value=value))
        _apply_row_style(ws, row, col_count, font=_TOTAL_FONT, fill=_TOTAL_FILL)
        row += 1

    _auto_fit_columns(ws)
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
