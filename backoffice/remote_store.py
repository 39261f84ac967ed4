"""Table-store adapters for onboarding rows, onboardings and customers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .categories import PARENT_FOREIGN_KEY, CategorySchema
from .errors import NotFound, RemoteUnavailable
from .schemas import CustomerFields, OnboardingStatus, OnboardingType
from .supabase import SupabaseClient

logger = logging.getLogger(__name__)


@dataclass
class ServerRecord:
    id: str
    fields: Dict[str, Any] = field(default_factory=dict)


class CategoryStore(Protocol):
    schema: CategorySchema

    async def list(self, parent_id: str) -> List[ServerRecord]:
        ...

    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> ServerRecord:
        ...

    async def update(self, server_id: str, patch: Mapping[str, Any]) -> ServerRecord:
        ...

    async def delete(self, server_id: str) -> None:
        ...


def _first_row(rows: List[Dict[str, Any]], action: str, table: str) -> Dict[str, Any]:
    if not rows:
        raise RemoteUnavailable(action, "no row returned", table=table)
    return rows[0]


class SupabaseCategoryStore:
    """CategoryStore backed by one Supabase table keyed by ``onboarding_id``."""

    def __init__(self, client: SupabaseClient, schema: CategorySchema) -> None:
        self.client = client
        self.schema = schema

    def _to_record(self, row: Mapping[str, Any]) -> ServerRecord:
        return ServerRecord(id=str(row["id"]), fields=self.schema.from_row(row))

    async def list(self, parent_id: str) -> List[ServerRecord]:
        rows = await self.client.select(
            self.schema.table,
            params={
                "select": "*",
                PARENT_FOREIGN_KEY: f"eq.{parent_id}",
                "order": "created_at.asc",
            },
        )
        return [self._to_record(row) for row in rows]

    async def create(self, parent_id: str, fields: Mapping[str, Any]) -> ServerRecord:
        payload = {PARENT_FOREIGN_KEY: parent_id, **self.schema.to_columns(fields)}
        rows = await self.client.insert(self.schema.table, payload)
        return self._to_record(_first_row(rows, "insert", self.schema.table))

    async def update(self, server_id: str, patch: Mapping[str, Any]) -> ServerRecord:
        rows = await self.client.update(
            self.schema.table,
            self.schema.to_columns(patch),
            params={"id": f"eq.{server_id}"},
        )
        if not rows:
            raise NotFound("update", f"id={server_id}", table=self.schema.table)
        return self._to_record(rows[0])

    async def delete(self, server_id: str) -> None:
        rows = await self.client.delete(self.schema.table, params={"id": f"eq.{server_id}"})
        if not rows:
            raise NotFound("delete", f"id={server_id}", table=self.schema.table)


class OnboardingStore:
    table = "customer_onboardings"

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    async def create(
        self,
        customer_id: str,
        onboarding_type: OnboardingType,
        status: OnboardingStatus,
        notes: Optional[str],
    ) -> Dict[str, Any]:
        rows = await self.client.insert(
            self.table,
            {
                "customer_id": customer_id,
                "onboarding_type": onboarding_type.value,
                "status": status.value,
                "notes": notes or None,
            },
            params={"select": "id"},
        )
        row = _first_row(rows, "insert", self.table)
        return {"id": str(row["id"])}

    async def update(self, onboarding_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        rows = await self.client.update(
            self.table,
            dict(patch),
            params={"id": f"eq.{onboarding_id}", "select": "id"},
        )
        if not rows:
            raise NotFound("update", f"id={onboarding_id}", table=self.table)
        return {"id": str(rows[0]["id"])}


class CustomerStore:
    table = "customers"

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    async def create(self, fields: CustomerFields) -> Dict[str, Any]:
        rows = await self.client.insert(
            self.table,
            fields.model_dump(mode="json"),
            params={"select": "id"},
        )
        row = _first_row(rows, "insert", self.table)
        logger.info("customer created", extra={"customer_id": row["id"]})
        return {"id": str(row["id"])}
