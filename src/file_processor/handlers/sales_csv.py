"""Sales CSV handler.

Expected columns: ``fecha,producto,categoria,precio_unitario,cantidad,descuento``
(date, product, category, unit price, quantity, discount percent). Rows that
fail validation are reported as line errors; the file itself still succeeds.
"""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass
from pathlib import Path

from file_processor.handlers.base import HandlerError, Metrics, read_text
from file_processor.models import ErrorKind, LineError

EXPECTED_COLUMNS = 6
MAX_DISCOUNT_PERCENT = 100.0


@dataclass(slots=True)
class SaleRecord:
    date: str
    product: str
    category: str
    price: float
    quantity: int
    discount: float

    @property
    def net_amount(self) -> float:
        gross = self.price * self.quantity
        return gross - gross * (self.discount / 100)


class _RowError(ValueError):
    pass


def handle(path: Path) -> Metrics:
    """Extract sales totals, unique products and valid record count."""

    text = read_text(path)
    rows = list(csv.reader(text.splitlines()))
    if not rows:
        raise HandlerError(ErrorKind.MALFORMED_INPUT, f"Empty CSV file: {path.name}")
    header = rows[0]
    if len(header) != EXPECTED_COLUMNS:
        raise HandlerError(
            ErrorKind.MALFORMED_INPUT,
            f"Unexpected CSV header in {path.name}: expected {EXPECTED_COLUMNS} columns, "
            f"got {len(header)}",
        )

    records: list[SaleRecord] = []
    errors: list[LineError] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if not row or all(not cell.strip() for cell in row):
            continue
        try:
            records.append(_parse_row(row))
        except _RowError as error:
            errors.append(LineError(line=line_no, message=str(error)))

    return {
        "total_sales": round(sum((record.net_amount for record in records), 0.0), 2),
        "unique_products": len({record.product for record in records}),
        "valid_records": len(records),
        "invalid_records": len(errors),
        "errors": [error.to_dict() for error in errors],
    }


def _parse_row(row: list[str]) -> SaleRecord:
    if len(row) != EXPECTED_COLUMNS:
        raise _RowError(f"expected {EXPECTED_COLUMNS} fields, got {len(row)}")
    date, product, category, price_raw, quantity_raw, discount_raw = (cell.strip() for cell in row)

    try:
        price = float(price_raw)
    except ValueError:
        raise _RowError(f"invalid price {price_raw!r}") from None
    if not math.isfinite(price):
        raise _RowError(f"invalid price {price_raw!r}")
    if price <= 0:
        raise _RowError(f"price must be positive, got {price_raw}")

    if not quantity_raw:
        raise _RowError("empty quantity")
    try:
        quantity = int(quantity_raw)
    except ValueError:
        raise _RowError(f"non-numeric quantity {quantity_raw!r}") from None
    if quantity <= 0:
        raise _RowError(f"quantity must be positive, got {quantity_raw}")

    try:
        discount = float(discount_raw)
    except ValueError:
        raise _RowError(f"invalid discount {discount_raw!r}") from None
    if not math.isfinite(discount):
        raise _RowError(f"invalid discount {discount_raw!r}")
    if not 0 <= discount <= MAX_DISCOUNT_PERCENT:
        raise _RowError(f"discount out of range: {discount_raw}")

    return SaleRecord(
        date=date,
        product=product,
        category=category,
        price=price,
        quantity=quantity,
        discount=discount,
    )
