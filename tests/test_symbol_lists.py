import pytest

from wealth_manager.errors import CsvImportError, NotFoundError
from wealth_manager.schemas import SymbolEntry, SymbolListCreate
from wealth_manager.symbol_lists import SymbolListStore, parse_symbol_csv


def test_parse_with_symbol_and_name_header():
    entries = parse_symbol_csv(b"Symbol,Name\naapl,Apple Inc.\nMSFT,Microsoft\nAAPL,Apple again\n")
    assert [(entry.symbol, entry.name) for entry in entries] == [("AAPL", "Apple Inc."), ("MSFT", "Microsoft")]


def test_parse_accepts_ticker_header_in_any_column():
    entries = parse_symbol_csv(b"Name,Ticker\nVanguard Total,vti\n")
    assert [(entry.symbol, entry.name) for entry in entries] == [("VTI", "Vanguard Total")]


def test_parse_without_header_uses_first_column():
    entries = parse_symbol_csv(b"AAPL,Apple\nMSFT\n")
    assert [(entry.symbol, entry.name) for entry in entries] == [("AAPL", "Apple"), ("MSFT", "")]


def test_parse_reports_invalid_symbols_by_row():
    with pytest.raises(CsvImportError) as exc_info:
        parse_symbol_csv(b"symbol\nAAPL\nnot a symbol!\n")
    assert exc_info.value.errors[0].row == 3
    assert "not a symbol!" in exc_info.value.errors[0].message


def test_parse_rejects_file_without_symbols():
    with pytest.raises(CsvImportError, match="File contains no symbols"):
        parse_symbol_csv(b"Symbol,Name\n")


def test_parse_enforces_size_limit():
    with pytest.raises(CsvImportError, match="File size exceeds"):
        parse_symbol_csv(b"AAPL\n" * 10, max_bytes=8)


def test_store_lifecycle():
    store = SymbolListStore()
    created = store.create(
        SymbolListCreate(
            name="  Tech  ",
            symbols=[SymbolEntry(symbol="aapl"), SymbolEntry(symbol="AAPL", name="dup"), SymbolEntry(symbol="msft")],
        )
    )

    assert created.name == "Tech"
    assert created.status == "active"
    assert [entry.symbol for entry in created.symbols] == ["AAPL", "MSFT"]
    assert store.get(created.id) is created
    assert store.list_all() == [created]

    store.set_status(created.id, "processing")
    assert store.get(created.id).status == "processing"

    store.delete(created.id)
    with pytest.raises(NotFoundError):
        store.get(created.id)
    with pytest.raises(NotFoundError):
        store.delete(created.id)
