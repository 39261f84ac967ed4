from __future__ import annotations

from backoffice.record_cache import LocalRecordCache
from backoffice.remote_store import ServerRecord


def _snapshot(cache: LocalRecordCache) -> list:
    return [(r.local_key, r.server_id, r.pending, r.fields) for r in cache.records()]


def test_append_creates_pending_rows_in_order() -> None:
    cache = LocalRecordCache("ingredient")
    first = cache.append({"name": "Cocoa"})
    second = cache.append({"name": "Sugar"})

    assert first.pending is True
    assert first.server_id is None
    assert first.local_key != second.local_key
    assert [r.fields["name"] for r in cache.records()] == ["Cocoa", "Sugar"]


def test_replace_confirms_row_and_keeps_local_key() -> None:
    cache = LocalRecordCache("ingredient")
    record = cache.append({"name": "Cocoa"})

    cache.replace(record.local_key, {"server_id": "srv-9", "fields": {"name": "Cocoa", "vendor_name": "Acme"}})

    stored = cache.get(record.local_key)
    assert stored is not None
    assert stored.pending is False
    assert stored.server_id == "srv-9"
    assert stored.fields["vendor_name"] == "Acme"


def test_replace_unknown_key_is_noop() -> None:
    cache = LocalRecordCache("ingredient")
    cache.append({"name": "Cocoa"})
    before = _snapshot(cache)

    assert cache.replace("missing", {"server_id": "srv-1", "fields": {}}) is None
    assert _snapshot(cache) == before


def test_replace_drops_copy_already_merged_from_server() -> None:
    cache = LocalRecordCache("ingredient")
    record = cache.append({"name": "Cocoa"})
    cache.merge_from_server([ServerRecord(id="srv-9", fields={"name": "Cocoa"})])
    assert len(cache) == 2

    cache.replace(record.local_key, {"server_id": "srv-9", "fields": {"name": "Cocoa"}})

    assert len(cache) == 1
    assert cache.records()[0].local_key == record.local_key
    assert cache.records()[0].server_id == "srv-9"


def test_remove_handles_pending_and_confirmed() -> None:
    cache = LocalRecordCache("product")
    pending = cache.append({"name": "Bar"})
    cache.merge_from_server([ServerRecord(id="srv-1", fields={"name": "Cookie"})])
    confirmed = cache.confirmed()[0]

    assert cache.remove(pending.local_key) is pending
    assert cache.remove(confirmed.local_key) is confirmed
    assert cache.remove("missing") is None
    assert len(cache) == 0


def test_merge_keeps_pending_rows_first() -> None:
    cache = LocalRecordCache("product")
    cache.merge_from_server([ServerRecord(id="srv-1", fields={"name": "Cookie"})])
    pending = cache.append({"name": "Bar"})

    cache.merge_from_server(
        [
            ServerRecord(id="srv-1", fields={"name": "Cookie"}),
            ServerRecord(id="srv-2", fields={"name": "Brownie"}),
        ]
    )

    records = cache.records()
    assert records[0].local_key == pending.local_key
    assert [r.server_id for r in records[1:]] == ["srv-1", "srv-2"]


def test_merge_is_idempotent() -> None:
    cache = LocalRecordCache("product")
    cache.append({"name": "Bar"})
    snapshot = [
        ServerRecord(id="srv-1", fields={"name": "Cookie"}),
        ServerRecord(id="srv-2", fields={"name": "Brownie"}),
    ]

    cache.merge_from_server(snapshot)
    first = _snapshot(cache)
    cache.merge_from_server(snapshot)

    assert _snapshot(cache) == first


def test_merge_never_loses_pending_rows() -> None:
    cache = LocalRecordCache("packaging")
    keys = [cache.append({"type": f"Pouch {idx}"}).local_key for idx in range(3)]

    for _ in range(3):
        cache.merge_from_server([ServerRecord(id="srv-1", fields={"type": "Jar"})])
    cache.merge_from_server([])

    assert [r.local_key for r in cache.pending()] == keys
    assert cache.confirmed() == []


def test_merge_replaces_confirmed_rows_with_snapshot() -> None:
    cache = LocalRecordCache("document")
    cache.merge_from_server(
        [
            ServerRecord(id="srv-1", fields={"document_type": "COA"}),
            ServerRecord(id="srv-2", fields={"document_type": "Spec sheet"}),
        ]
    )
    kept_key = cache.records()[1].local_key

    cache.merge_from_server([ServerRecord(id="srv-2", fields={"document_type": "Spec sheet v2"})])

    records = cache.records()
    assert len(records) == 1
    assert records[0].local_key == kept_key
    assert records[0].fields["document_type"] == "Spec sheet v2"


def test_merge_collapses_duplicate_ids_in_snapshot() -> None:
    cache = LocalRecordCache("document")
    cache.merge_from_server(
        [
            ServerRecord(id="srv-1", fields={"document_type": "COA"}),
            ServerRecord(id="srv-1", fields={"document_type": "COA"}),
        ]
    )
    assert len(cache) == 1


def test_merge_keeps_rows_confirmed_after_fetch_started() -> None:
    cache = LocalRecordCache("ingredient")
    record = cache.append({"name": "Cocoa"})
    token = cache.merge_token()

    cache.replace(record.local_key, {"server_id": "srv-9", "fields": {"name": "Cocoa"}})
    cache.merge_from_server([], token=token)

    assert _snapshot(cache) == [(record.local_key, "srv-9", False, {"name": "Cocoa"})]


def test_merge_drops_rows_confirmed_before_fetch_started() -> None:
    cache = LocalRecordCache("ingredient")
    record = cache.append({"name": "Cocoa"})
    cache.replace(record.local_key, {"server_id": "srv-9", "fields": {"name": "Cocoa"}})
    token = cache.merge_token()

    cache.merge_from_server([], token=token)

    assert len(cache) == 0
