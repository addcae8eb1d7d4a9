from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from asset_import.db.store import InMemoryStore, StoreError
from asset_import.models.config_models import MatchingConfig
from asset_import.models.resolution import ReferenceKind, ResolutionMode, ResolutionStatus
from asset_import.models.snapshot import Snapshot
from asset_import.services.resolver import EntityResolver, find_fuzzy_candidates

PREVIEW = ResolutionMode.PREVIEW
COMMIT = ResolutionMode.COMMIT
VENDOR = ReferenceKind.VENDOR
CATEGORY = ReferenceKind.CATEGORY


def _snapshot(**kinds) -> Snapshot:
    return Snapshot(
        categories=list(kinds.get("categories", [])),
        locations=list(kinds.get("locations", [])),
        vendors=list(kinds.get("vendors", [])),
    )


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_blank_reference_is_not_an_error(raw):
    res = EntityResolver(_snapshot()).resolve(CATEGORY, raw, PREVIEW, auto_create=False)
    assert res.status is ResolutionStatus.NO_REFERENCE
    assert not res.is_failure
    assert res.error_message() is None


def test_exact_match_is_case_insensitive_and_trimmed():
    snap = _snapshot(categories=[{"id": 1, "name": "Appliances"}])
    res = EntityResolver(snap).resolve(CATEGORY, "  appliances ", PREVIEW, auto_create=True)
    assert res.status is ResolutionStatus.FOUND
    assert res.entity_id == 1
    assert res.name == "appliances"
    assert res.matched_name == "Appliances"
    assert res.warning_message() is None


def test_vendor_fuzzy_match_in_preview():
    snap = _snapshot(vendors=[{"id": 20, "name": "Acme Co"}])
    res = EntityResolver(snap).resolve(VENDOR, "Acme Co.", PREVIEW, auto_create=True)
    assert res.status is ResolutionStatus.WILL_FUZZY_MATCH
    assert res.entity_id == 20
    assert res.similarity == 0.875
    assert res.candidates == ("Acme Co",)
    assert res.warning_message() == "Vendor 'Acme Co.' will match existing 'Acme Co'."


def test_vendor_below_threshold_will_create():
    snap = _snapshot(vendors=[{"id": 20, "name": "Acme"}])
    res = EntityResolver(snap).resolve(VENDOR, "Ace", PREVIEW, auto_create=True)
    assert res.status is ResolutionStatus.WILL_CREATE
    assert res.entity_id is None
    assert res.warning_message() == "Vendor will create: Ace"


def test_vendor_below_threshold_without_auto_create_is_not_found():
    snap = _snapshot(vendors=[{"id": 20, "name": "Acme"}])
    res = EntityResolver(snap).resolve(VENDOR, "Ace", PREVIEW, auto_create=False)
    assert res.status is ResolutionStatus.NOT_FOUND
    assert res.error_message() == "Vendor 'Ace' not found."


def test_lower_threshold_is_configurable():
    snap = _snapshot(vendors=[{"id": 20, "name": "Acme"}])
    resolver = EntityResolver(snap, matching=MatchingConfig(fuzzy_threshold=0.7))
    res = resolver.resolve(VENDOR, "Ace", PREVIEW, auto_create=True)
    assert res.status is ResolutionStatus.WILL_FUZZY_MATCH


def test_categories_are_never_fuzzy_matched():
    snap = _snapshot(categories=[{"id": 1, "name": "Appliances"}])
    res = EntityResolver(snap).resolve(CATEGORY, "Appliance", PREVIEW, auto_create=False)
    assert res.status is ResolutionStatus.NOT_FOUND
    assert res.error_message() == "Category 'Appliance' not found."


def test_fuzzy_ties_keep_snapshot_order_and_cutoff():
    vendors = [{"id": i, "name": f"Acme C{c}"} for i, c in enumerate("vwxyz", start=1)]
    found = find_fuzzy_candidates("Acme Cq", vendors, MatchingConfig())
    assert [e["name"] for e, _ in found] == ["Acme Cv", "Acme Cw", "Acme Cx"]
    assert all(score == pytest.approx(6 / 7) for _, score in found)


def test_fuzzy_prefers_higher_similarity():
    vendors = [{"id": 1, "name": "Home Depot Inc"}, {"id": 2, "name": "Home Depot"}]
    found = find_fuzzy_candidates("Home Depo", vendors, MatchingConfig())
    assert [e["id"] for e, _ in found] == [2]


def test_preview_never_calls_the_store():
    store = MagicMock()
    resolver = EntityResolver(_snapshot(), store=store)
    res = resolver.resolve(CATEGORY, "Tools", PREVIEW, auto_create=True)
    assert res.status is ResolutionStatus.WILL_CREATE
    store.create.assert_not_called()
    store.list.assert_not_called()


def test_commit_creates_once_and_reuses():
    store = InMemoryStore()
    snap = Snapshot.take(store)
    resolver = EntityResolver(snap, store=store)

    first = resolver.resolve(CATEGORY, "Appliances", COMMIT, auto_create=True)
    second = resolver.resolve(CATEGORY, "APPLIANCES", COMMIT, auto_create=True)

    assert first.status is ResolutionStatus.CREATED
    assert second.status is ResolutionStatus.FOUND
    assert first.entity_id == second.entity_id
    assert [c["name"] for c in store.list("category")] == ["Appliances"]


def test_commit_fuzzy_match_uses_existing_id():
    store = InMemoryStore(seed={"vendor": [{"id": 7, "name": "Best Buy"}]})
    resolver = EntityResolver(Snapshot.take(store), store=store)
    res = resolver.resolve(VENDOR, "Best Buy.", COMMIT, auto_create=True)
    assert res.status is ResolutionStatus.FUZZY_MATCHED
    assert res.entity_id == 7
    assert len(store.list("vendor")) == 1


def test_commit_creation_failure_is_reported_not_raised():
    store = MagicMock()
    store.create.side_effect = StoreError("permission denied")
    resolver = EntityResolver(_snapshot(), store=store)
    res = resolver.resolve(CATEGORY, "Tools", COMMIT, auto_create=True)
    assert res.status is ResolutionStatus.CREATION_FAILED
    assert res.error == "permission denied"
    assert res.error_message() == "Failed to create category 'Tools'."


def test_commit_mode_requires_store():
    resolver = EntityResolver(_snapshot())
    with pytest.raises(RuntimeError):
        resolver.resolve(CATEGORY, "Tools", COMMIT, auto_create=True)


def test_concurrent_auto_create_creates_single_entity():
    store = InMemoryStore()
    resolver = EntityResolver(Snapshot.take(store), store=store)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(
            pool.map(lambda _: resolver.resolve(VENDOR, "Costco", COMMIT, auto_create=True), range(16))
        )

    assert len(store.list("vendor")) == 1
    assert len({r.entity_id for r in results}) == 1
    assert sum(1 for r in results if r.status is ResolutionStatus.CREATED) == 1


class SlowVendorStore(InMemoryStore):
    def create(self, kind, fields):
        if kind == "vendor":
            time.sleep(0.2)
        return super().create(kind, fields)


def test_concurrent_near_duplicate_vendors_merge():
    store = SlowVendorStore()
    resolver = EntityResolver(Snapshot.take(store), store=store)

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(
            pool.map(lambda raw: resolver.resolve(VENDOR, raw, COMMIT, auto_create=True), ["Acme Co", "Acme Co."])
        )

    assert [v["name"] for v in store.list("vendor")] in (["Acme Co"], ["Acme Co."])
    assert len({r.entity_id for r in results}) == 1
    assert sorted(r.status.name for r in results) == ["CREATED", "FUZZY_MATCHED"]


@pytest.mark.parametrize(
    "kind,raw",
    [
        (VENDOR, "acme co."),
        (VENDOR, "Brand New Vendor"),
        (CATEGORY, "electronics"),
        (CATEGORY, "Garden"),
    ],
)
def test_preview_and_commit_choose_same_target(kind, raw):
    seed = {
        "vendor": [{"id": 20, "name": "Acme Co"}],
        "category": [{"id": 2, "name": "Electronics"}],
    }
    preview = EntityResolver(Snapshot.take(InMemoryStore(seed=seed))).resolve(
        kind, raw, PREVIEW, auto_create=True
    )
    store = InMemoryStore(seed=seed)
    commit = EntityResolver(Snapshot.take(store), store=store).resolve(kind, raw, COMMIT, auto_create=True)
    assert preview.target_key == commit.target_key
