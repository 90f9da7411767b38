from __future__ import annotations

import csv
import io
from datetime import UTC, datetime
from uuid import uuid4

from pydantic import ValidationError

from wealth_manager.csv_io import decode_upload
from wealth_manager.errors import CsvImportError, NotFoundError
from wealth_manager.schemas import (
    CsvRowError,
    SymbolEntry,
    SymbolList,
    SymbolListCreate,
    SymbolListStatus,
)
from wealth_manager.telemetry import get_logger

logger = get_logger(__name__)

SYMBOL_HEADERS = ("symbol", "ticker")


def dedupe_entries(entries: list[SymbolEntry]) -> list[SymbolEntry]:
    unique: dict[str, SymbolEntry] = {}
    for entry in entries:
        unique.setdefault(entry.symbol, entry)
    return list(unique.values())


def parse_symbol_csv(data: bytes, max_bytes: int | None = None) -> list[SymbolEntry]:
    """Read ``Symbol``/``Name`` rows from an uploaded file.

    Without a recognisable header the first column is taken as the symbol and
    the second, when present, as the name.
    """
    text = decode_upload(data, max_bytes)
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        raise CsvImportError("File contains no symbols")

    header = [cell.strip().lower() for cell in rows[0]]
    symbol_index = next((header.index(name) for name in SYMBOL_HEADERS if name in header), None)
    if symbol_index is not None:
        name_index = header.index("name") if "name" in header else None
        body = rows[1:]
        first_row = 2
    else:
        symbol_index = 0
        name_index = 1 if len(rows[0]) > 1 else None
        body = rows
        first_row = 1

    entries: list[SymbolEntry] = []
    errors: list[CsvRowError] = []
    for offset, row in enumerate(body):
        raw_symbol = row[symbol_index].strip() if symbol_index < len(row) else ""
        if not raw_symbol:
            continue
        name = row[name_index].strip() if name_index is not None and name_index < len(row) else ""
        try:
            entries.append(SymbolEntry(symbol=raw_symbol, name=name))
        except ValidationError:
            errors.append(CsvRowError(row=first_row + offset, message=f"Invalid symbol '{raw_symbol}'"))

    if errors:
        raise CsvImportError(f"{len(errors)} invalid symbol(s) in upload", errors)
    if not entries:
        raise CsvImportError("File contains no symbols")
    return dedupe_entries(entries)


class SymbolListStore:
    def __init__(self) -> None:
        self._lists: dict[str, SymbolList] = {}

    def create(self, payload: SymbolListCreate) -> SymbolList:
        symbol_list = SymbolList(
            id=uuid4().hex,
            name=payload.name.strip(),
            upload_date=datetime.now(UTC),
            symbols=dedupe_entries(payload.symbols),
        )
        self._lists[symbol_list.id] = symbol_list
        logger.info(
            "symbol_list_created",
            extra={"list_id": symbol_list.id, "symbols": len(symbol_list.symbols)},
        )
        return symbol_list

    def list_all(self) -> list[SymbolList]:
        return sorted(self._lists.values(), key=lambda item: item.upload_date)

    def get(self, list_id: str) -> SymbolList:
        symbol_list = self._lists.get(list_id)
        if symbol_list is None:
            raise NotFoundError(f"Symbol list '{list_id}' not found")
        return symbol_list

    def delete(self, list_id: str) -> None:
        self.get(list_id)
        del self._lists[list_id]

    def set_status(self, list_id: str, status: SymbolListStatus) -> None:
        symbol_list = self._lists.get(list_id)
        if symbol_list is not None:
            symbol_list.status = status
