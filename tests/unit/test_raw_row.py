from __future__ import annotations

from asset_import.models.raw_row import RawRow


def test_parse_keeps_header_contract_fields():
    row = RawRow.parse({"name": "Desk", "serialNumber": "SN1", "purchasePrice": "12.5"}, row_number=3)
    assert row.row_number == 3
    assert row.name == "Desk"
    assert row.serial_number == "SN1"
    assert row.purchase_price == "12.5"


def test_parse_drops_unknown_columns():
    row = RawRow.parse({"name": "Desk", "colour": "red", "id": "9"}, row_number=1)
    assert row.name == "Desk"
    assert not hasattr(row, "colour")
    # 未知の列だけの行は空行扱い
    assert RawRow.parse({"colour": "red"}, row_number=2).is_blank()


def test_parse_accepts_snake_case_and_padded_headers():
    row = RawRow.parse({" serial_number ": "X1", "purchase_date": "2024-01-02"}, row_number=1)
    assert row.serial_number == "X1"
    assert row.purchase_date == "2024-01-02"


def test_nan_and_numbers_become_text():
    row = RawRow.parse({"name": float("nan"), "purchasePrice": 10}, row_number=1)
    assert row.name is None
    assert row.purchase_price == "10"


def test_is_blank():
    assert RawRow.parse({"name": "  ", "notes": None}, row_number=1).is_blank()
    assert not RawRow.parse({"tags": "a"}, row_number=1).is_blank()


def test_reference_name():
    row = RawRow.parse({"category": "Tools", "vendor": "Acme"}, row_number=1)
    assert row.reference_name("category") == "Tools"
    assert row.reference_name("vendor") == "Acme"
    assert row.reference_name("location") is None
