from __future__ import annotations

from unittest.mock import patch

from asset_import.db.store import InMemoryStore, StoreError
from asset_import.services.duplicate_scanner import scan_duplicates


def test_clean_store_has_no_issues(seeded_store):
    report = scan_duplicates(seeded_store)
    assert report.success is True
    assert report.issues == []
    assert report.issues_found == 0


def test_reports_each_duplicate_kind():
    store = InMemoryStore(
        seed={
            "asset": [
                {"name": "Fridge", "serialNumber": "SN1"},
                {"name": "Freezer", "serialNumber": " sn1 "},
                {"name": "No serial"},
                {"name": "No serial either", "serialNumber": ""},
            ],
            "category": [{"name": "Tools"}, {"name": "tools"}],
            "vendor": [{"name": "Acme"}, {"name": " ACME "}],
            "location": [
                {"id": 1, "name": "House"},
                {"id": 2, "name": "Kitchen", "parentId": 1},
                {"id": 3, "name": "kitchen", "parentId": 1},
                {"id": 4, "name": "Kitchen"},
            ],
        }
    )
    report = scan_duplicates(store)

    assert report.success is True
    assert [i.type for i in report.issues] == [
        "duplicate_serial",
        "duplicate_category",
        "duplicate_vendor",
        "duplicate_location",
    ]
    serial = report.issues[0]
    assert serial.message == 'Duplicate serial number " sn1 " found in assets: Fridge and Freezer'
    assert [r["name"] for r in serial.records] == ["Fridge", "Freezer"]
    assert report.issues[3].message == 'Duplicate location name "kitchen" under same parent'
    assert [r["id"] for r in report.issues[3].records] == [2, 3]


def test_read_failure_is_reported_not_raised():
    store = InMemoryStore()
    with patch.object(store, "list", side_effect=StoreError("db down")):
        report = scan_duplicates(store)
    assert report.success is False
    assert report.error == "db down"
    assert report.issues == []
