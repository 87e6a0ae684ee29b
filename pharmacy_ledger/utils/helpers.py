# utils/helpers.py
from datetime import date
import sqlite3


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def money(v: float, places: int = 2) -> float:
    """Round a computed amount to currency precision."""
    return round(float(v), places)


def new_doc_number(conn: sqlite3.Connection, table: str, column: str, prefix: str, date_str: str) -> str:
    """
    Next sequential document number for a day, e.g. PO20250110-0003.
    `table`/`column` come from code, never from user input.
    """
    d = date_str.replace("-", "")
    stem = f"{prefix}{d}-"
    row = conn.execute(
        f"SELECT MAX({column}) AS m FROM {table} WHERE {column} LIKE ?", (stem + "%",)
    ).fetchone()
    last = 0
    if row and row["m"]:
        try:
            last = int(str(row["m"]).split("-")[-1])
        except ValueError:
            last = 0
    return f"{stem}{last + 1:04d}"


def line_subtotal(quantity: float, unit_price: float, discount_percent: float = 0.0) -> float:
    """qty * price less the line's percentage discount."""
    gross = float(quantity) * float(unit_price)
    return money(gross * (1.0 - float(discount_percent or 0.0) / 100.0))


def document_total(subtotal: float, discount_amount: float = 0.0, tax_amount: float = 0.0) -> float:
    """Header total, never below zero."""
    return money(max(0.0, float(subtotal) - float(discount_amount or 0.0) + float(tax_amount or 0.0)))
