from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

from .categories import CategorySchema
from .errors import NotFound, UnknownRecord, ValidationError
from .fetch_merger import FetchMerger
from .parent_lifecycle import ParentRef
from .record_cache import ChildRecord, LocalRecordCache
from .remote_store import CategoryStore
from .schemas import ChildRecordOut, OnboardingType
from .sync_coordinator import SyncCoordinator, SyncPassResult

logger = logging.getLogger(__name__)


class CategoryEditor:
    """Row handlers for one category of an onboarding form.

    Rows can be added before the onboarding exists; they stay pending until
    a parent id is available and the coordinator persists them.
    """

    def __init__(
        self,
        schema: CategorySchema,
        store: CategoryStore,
        parent: ParentRef,
        *,
        onboarding_type: Optional[Callable[[], OnboardingType]] = None,
    ) -> None:
        self.schema = schema
        self.store = store
        self.parent = parent
        self._onboarding_type = onboarding_type
        self.cache = LocalRecordCache(schema.name)
        self.merger = FetchMerger(self.cache, store)
        self.coordinator = SyncCoordinator(self.cache, store)

    @property
    def category(self) -> str:
        return self.schema.name

    @property
    def available(self) -> bool:
        if self._onboarding_type is None:
            return True
        return self.schema.is_available(self._onboarding_type())

    def records(self) -> List[ChildRecord]:
        return self.cache.records()

    def pending_count(self) -> int:
        return len(self.cache.pending())

    def is_syncing(self, local_key: str) -> bool:
        return local_key in self.coordinator.in_flight

    def describe(self, record: ChildRecord) -> ChildRecordOut:
        return ChildRecordOut(
            local_key=record.local_key,
            server_id=record.server_id,
            pending=record.pending,
            syncing=self.is_syncing(record.local_key),
            fields=record.fields,
        )

    def _require(self, local_key: str) -> ChildRecord:
        record = self.cache.get(local_key)
        if record is None:
            raise UnknownRecord(self.category, local_key)
        return record

    def append(self, fields: Mapping[str, Any]) -> ChildRecord:
        if not self.available:
            raise ValidationError(
                self.category,
                f"not available for {self._onboarding_type().value} onboardings",
            )
        validated = self.schema.validate(fields)
        return self.cache.append(validated)

    async def add(self, fields: Mapping[str, Any]) -> ChildRecord:
        record = self.append(fields)
        await self.sync()
        return record

    async def edit(self, local_key: str, patch: Mapping[str, Any]) -> ChildRecord:
        record = self._require(local_key)
        # an earlier edit that never reached the server is the base
        base = self.coordinator.unsaved_edit(local_key) or record.fields
        merged = self.schema.merge_patch(base, patch)
        if record.pending:
            self.cache.update_fields(local_key, merged)
            return record
        updated = await self.store.update(record.server_id, merged)
        self.cache.update_fields(local_key, updated.fields)
        self.coordinator.forget_edit(local_key)
        return record

    async def remove(self, local_key: str) -> None:
        record = self._require(local_key)
        if record.pending:
            self.cache.remove(local_key)
            return
        try:
            await self.store.delete(record.server_id)
        except NotFound:
            logger.info(
                "row already gone on server",
                extra={"category": self.category, "server_id": record.server_id},
            )
        self.cache.remove(local_key)
        self.coordinator.forget_edit(local_key)

    async def sync(self) -> SyncPassResult:
        if not self.available:
            if self.pending_count():
                logger.info(
                    "category not available for onboarding type, rows held back",
                    extra={"category": self.category, "pending": self.pending_count()},
                )
            return SyncPassResult()
        if not self.coordinator.should_run(self.parent.id):
            return SyncPassResult()
        return await self.coordinator.run_pass(self.parent.id)

    async def refresh(self) -> Optional[List[ChildRecord]]:
        return await self.merger.load(self.parent.id)

    async def refresh_and_sync(self) -> SyncPassResult:
        await self.refresh()
        return await self.sync()

    async def on_parent_created(self, parent_id: str) -> None:
        logger.info(
            "parent available, syncing rows",
            extra={"category": self.category, "parent_id": parent_id, "pending": self.pending_count()},
        )
        await self.refresh_and_sync()
