from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from backoffice.categories import DOCUMENT, INGREDIENT, PACKAGING
from backoffice.errors import NotFound, RemoteUnavailable
from backoffice.remote_store import CustomerStore, OnboardingStore, SupabaseCategoryStore
from backoffice.schemas import CustomerFields, OnboardingStatus, OnboardingType
from backoffice.supabase import SupabaseClient

from .fakes import FakeSupabase


def test_category_list_filters_by_parent_and_maps_columns() -> None:
    fake = FakeSupabase(
        select_queue={
            "onboarding_ingredients": [
                [
                    {
                        "id": "srv-9",
                        "onboarding_id": "ob-1",
                        "ingredient_name": "Cocoa",
                        "vendor_name": "Acme",
                        "provided_by_customer": False,
                        "created_at": "2025-01-01T00:00:00Z",
                    }
                ]
            ]
        }
    )
    store = SupabaseCategoryStore(fake, INGREDIENT)

    records = asyncio.run(store.list("ob-1"))

    assert len(records) == 1
    assert records[0].id == "srv-9"
    assert records[0].fields == {"name": "Cocoa", "vendor_name": "Acme", "provided_by_customer": False}
    _, table, params = fake.calls[0]
    assert table == "onboarding_ingredients"
    assert params["onboarding_id"] == "eq.ob-1"
    assert params["order"] == "created_at.asc"


def test_category_create_sends_foreign_key_and_columns() -> None:
    fake = FakeSupabase(
        insert_queue={
            "onboarding_packaging": [
                [{"id": 41, "onboarding_id": "ob-1", "packaging_type": "Pouch", "size": "8oz"}]
            ]
        }
    )
    store = SupabaseCategoryStore(fake, PACKAGING)

    record = asyncio.run(store.create("ob-1", {"type": "Pouch", "size": "8oz"}))

    assert record.id == "41"
    assert record.fields["type"] == "Pouch"
    _, table, payload, _ = fake.calls[0]
    assert table == "onboarding_packaging"
    assert payload == {"onboarding_id": "ob-1", "packaging_type": "Pouch", "size": "8oz"}


def test_category_create_without_representation_is_unavailable() -> None:
    store = SupabaseCategoryStore(FakeSupabase(), DOCUMENT)
    with pytest.raises(RemoteUnavailable):
        asyncio.run(store.create("ob-1", {"document_type": "COA", "file_url": "https://x"}))


def test_category_update_and_delete_missing_rows_raise_not_found() -> None:
    store = SupabaseCategoryStore(FakeSupabase(), DOCUMENT)

    with pytest.raises(NotFound):
        asyncio.run(store.update("srv-1", {"document_type": "COA"}))
    with pytest.raises(NotFound):
        asyncio.run(store.delete("srv-1"))


def test_onboarding_store_create_and_update() -> None:
    fake = FakeSupabase(
        insert_queue={"customer_onboardings": [[{"id": "ob-1"}]]},
        update_queue={"customer_onboardings": [[{"id": "ob-1"}]]},
    )
    store = OnboardingStore(fake)

    created = asyncio.run(store.create("cust-1", OnboardingType.BNUTTY, OnboardingStatus.DRAFT, ""))
    updated = asyncio.run(store.update("ob-1", {"status": "Submitted"}))

    assert created == {"id": "ob-1"}
    assert updated == {"id": "ob-1"}
    _, _, payload, params = fake.calls[0]
    assert payload == {
        "customer_id": "cust-1",
        "onboarding_type": "BNUTTY",
        "status": "Draft",
        "notes": None,
    }
    assert params == {"select": "id"}
    assert fake.calls[1][3]["id"] == "eq.ob-1"


def test_customer_store_create() -> None:
    fake = FakeSupabase(insert_queue={"customers": [[{"id": "cust-1"}]]})
    store = CustomerStore(fake)

    created = asyncio.run(store.create(CustomerFields(company_name="Acme", email="ops@acme.test")))

    assert created == {"id": "cust-1"}
    payload = fake.calls[0][2]
    assert payload["company_name"] == "Acme"
    assert payload["status"] == "Active"


def _client(handler) -> SupabaseClient:
    return SupabaseClient(
        base_url="http://localhost:54321",
        anon_key="anon",
        access_token="token",
        transport=httpx.MockTransport(handler),
    )


def test_supabase_client_sends_headers_and_params() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["query"] = dict(request.url.params)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "srv-1"}])

    rows = asyncio.run(_client(handler).insert("onboarding_documents", {"document_type": "COA"}))

    assert rows == [{"id": "srv-1"}]
    assert seen["method"] == "POST"
    assert seen["path"] == "/rest/v1/onboarding_documents"
    assert seen["headers"]["apikey"] == "anon"
    assert seen["headers"]["authorization"] == "Bearer token"
    assert seen["headers"]["prefer"] == "return=representation"
    assert seen["body"] == {"document_type": "COA"}


def test_supabase_client_error_status_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(RemoteUnavailable) as exc:
        asyncio.run(_client(handler).select("onboarding_products", {"select": "*"}))

    assert exc.value.status_code == 503
    assert "upstream down" in str(exc.value)


def test_supabase_client_transport_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteUnavailable):
        asyncio.run(_client(handler).delete("onboarding_products", {"id": "eq.1"}))


def test_supabase_client_empty_delete_returns_no_rows() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    assert asyncio.run(_client(handler).delete("onboarding_products", {"id": "eq.1"})) == []
