"""Persists pending onboarding rows once the parent onboarding exists.

Each pending row is claimed before its insert is issued and released when
the insert resolves, so a row never has two inserts in flight. A failed
insert leaves the row pending; it is picked up again on the next pass.

Known limitation: if an insert succeeds on the server but the response is
lost, the retry creates a second server row. No idempotency key is sent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from .errors import NotFound, RemoteStoreError
from .record_cache import ChildRecord, LocalRecordCache
from .remote_store import CategoryStore

logger = logging.getLogger(__name__)


@dataclass
class SyncPassResult:
    synced: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    edits_saved: List[str] = field(default_factory=list)


class SyncCoordinator:
    def __init__(self, cache: LocalRecordCache, store: CategoryStore) -> None:
        self.cache = cache
        self.store = store
        self._syncing: set[str] = set()
        # edits made during an insert whose follow-up update failed
        self._unsaved_edits: Dict[str, dict] = {}

    @property
    def in_flight(self) -> FrozenSet[str]:
        return frozenset(self._syncing)

    @property
    def unsaved_edits(self) -> FrozenSet[str]:
        return frozenset(self._unsaved_edits)

    def unsaved_edit(self, local_key: str) -> Optional[dict]:
        return self._unsaved_edits.get(local_key)

    def forget_edit(self, local_key: str) -> None:
        self._unsaved_edits.pop(local_key, None)

    def eligible(self) -> List[ChildRecord]:
        return [record for record in self.cache.pending() if record.local_key not in self._syncing]

    def should_run(self, parent_id: Optional[str]) -> bool:
        if not parent_id:
            return False
        return bool(self.eligible()) or any(key not in self._syncing for key in self._unsaved_edits)

    async def run_pass(self, parent_id: Optional[str]) -> SyncPassResult:
        result = SyncPassResult()
        if not parent_id:
            return result
        queued_edits = list(self._unsaved_edits)
        for record in self.eligible():
            local_key = record.local_key
            # an earlier await in this pass may have let another pass claim it
            if local_key in self._syncing:
                continue
            current = self.cache.get(local_key)
            if current is None or not current.pending:
                continue
            self._syncing.add(local_key)
            try:
                synced = await self._sync_one(parent_id, current)
            finally:
                self._syncing.discard(local_key)
            if synced:
                result.synced.append(local_key)
            else:
                result.failed.append(local_key)
        await self._retry_edits(queued_edits, result)
        if result.synced or result.failed or result.edits_saved:
            logger.info(
                "sync pass finished",
                extra={
                    "category": self.cache.category,
                    "parent_id": parent_id,
                    "synced": len(result.synced),
                    "failed": len(result.failed),
                    "edits_saved": len(result.edits_saved),
                },
            )
        return result

    async def _sync_one(self, parent_id: str, record: ChildRecord) -> bool:
        sent = dict(record.fields)
        try:
            created = await self.store.create(parent_id, sent)
        except RemoteStoreError as exc:
            logger.warning(
                "row sync failed, will retry",
                extra={
                    "category": self.cache.category,
                    "local_key": record.local_key,
                    "parent_id": parent_id,
                    "error": str(exc),
                },
            )
            return False

        current = self.cache.get(record.local_key)
        if current is None:
            await self._discard_orphan(created.id, record.local_key)
            return True

        edited = current.fields != sent
        local_fields = dict(current.fields)
        self.cache.replace(record.local_key, {"server_id": created.id, "fields": created.fields})
        if edited:
            await self._push_local_edit(record.local_key, created.id, local_fields)
        return True

    async def _push_local_edit(self, local_key: str, server_id: str, fields: dict) -> None:
        try:
            updated = await self.store.update(server_id, fields)
        except RemoteStoreError as exc:
            logger.warning(
                "edit made during sync was not saved, will retry",
                extra={"category": self.cache.category, "local_key": local_key, "error": str(exc)},
            )
            # the cache keeps the inserted fields until the edit lands
            self._unsaved_edits[local_key] = fields
            return
        self.cache.update_fields(local_key, updated.fields)

    async def _retry_edits(self, local_keys: List[str], result: SyncPassResult) -> None:
        for local_key in local_keys:
            fields = self._unsaved_edits.get(local_key)
            if fields is None or local_key in self._syncing:
                continue
            record = self.cache.get(local_key)
            if record is None or record.pending:
                self._unsaved_edits.pop(local_key, None)
                continue
            self._syncing.add(local_key)
            try:
                updated = await self.store.update(record.server_id, fields)
            except NotFound:
                logger.info(
                    "row gone on server, dropping unsaved edit",
                    extra={"category": self.cache.category, "local_key": local_key},
                )
                self._unsaved_edits.pop(local_key, None)
                continue
            except RemoteStoreError as exc:
                logger.warning(
                    "unsaved edit retry failed",
                    extra={"category": self.cache.category, "local_key": local_key, "error": str(exc)},
                )
                result.failed.append(local_key)
                continue
            finally:
                self._syncing.discard(local_key)
            # a newer edit saved meanwhile wins
            if self._unsaved_edits.get(local_key) is fields:
                del self._unsaved_edits[local_key]
                self.cache.update_fields(local_key, updated.fields)
            result.edits_saved.append(local_key)

    async def _discard_orphan(self, server_id: str, local_key: str) -> None:
        logger.info(
            "row removed while syncing, deleting server copy",
            extra={"category": self.cache.category, "local_key": local_key, "server_id": server_id},
        )
        try:
            await self.store.delete(server_id)
        except NotFound:
            pass
        except RemoteStoreError as exc:
            logger.warning(
                "orphaned row could not be deleted",
                extra={"category": self.cache.category, "server_id": server_id, "error": str(exc)},
            )
