"""CSV import and export of portfolio holdings."""

from __future__ import annotations

import csv
import io

from pydantic import ValidationError

from wealth_manager.errors import CsvImportError
from wealth_manager.mock_data import CSV_TEMPLATE_ROWS
from wealth_manager.schemas import CsvRowError, Holding, HoldingCreate

TEMPLATE_COLUMNS = ["symbol", "name", "asset_type", "quantity", "average_cost"]
EXPORT_COLUMNS = TEMPLATE_COLUMNS + ["current_price", "current_value"]
REQUIRED_COLUMNS = ("symbol", "quantity", "average_cost")


def decode_upload(data: bytes, max_bytes: int | None = None) -> str:
    if max_bytes is not None and len(data) > max_bytes:
        megabytes = max_bytes // (1024 * 1024)
        limit = f"{megabytes}MB" if megabytes else f"{max_bytes} byte"
        raise CsvImportError(f"File size exceeds the {limit} limit")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CsvImportError("File must be a UTF-8 encoded CSV") from exc


def _clean_number(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().replace(",", "").replace("$", "")
    return cleaned or None


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def csv_template() -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=TEMPLATE_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(CSV_TEMPLATE_ROWS)
    return buffer.getvalue()


def parse_holdings_csv(data: bytes, max_bytes: int | None = None) -> list[HoldingCreate]:
    """Parse an uploaded holdings CSV.

    The whole file is validated before anything is returned; any bad row
    rejects the upload with a per-row error list.
    """
    text = decode_upload(data, max_bytes)
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise CsvImportError("CSV file is empty")

    columns = {name.strip().lower(): name for name in reader.fieldnames if name}
    missing = [column for column in REQUIRED_COLUMNS if column not in columns]
    if missing:
        raise CsvImportError(f"Missing required columns: {', '.join(missing)}")

    def cell(row: dict[str, str | None], column: str) -> str | None:
        source = columns.get(column)
        if source is None:
            return None
        value = row.get(source)
        return value.strip() if isinstance(value, str) else value

    holdings: list[HoldingCreate] = []
    errors: list[CsvRowError] = []
    row_number = 0
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        row_number += 1
        try:
            holdings.append(
                HoldingCreate(
                    symbol=cell(row, "symbol") or "",
                    name=cell(row, "name") or None,
                    asset_type=(cell(row, "asset_type") or "stock").lower(),
                    quantity=_clean_number(cell(row, "quantity")),
                    average_cost=_clean_number(cell(row, "average_cost")),
                )
            )
        except (ValidationError, ValueError) as exc:
            message = _describe(exc) if isinstance(exc, ValidationError) else str(exc)
            errors.append(CsvRowError(row=row_number, message=message))

    if errors:
        raise CsvImportError(f"{len(errors)} invalid row(s) in CSV upload", errors)
    if not holdings:
        raise CsvImportError("CSV file contains no holdings")
    return holdings


def export_holdings_csv(holdings: list[Holding]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for holding in holdings:
        writer.writerow(
            {
                "symbol": holding.symbol,
                "name": holding.name or "",
                "asset_type": holding.asset_type,
                "quantity": holding.quantity,
                "average_cost": holding.average_cost,
                "current_price": holding.current_price,
                "current_value": holding.current_value,
            }
        )
    return buffer.getvalue()
