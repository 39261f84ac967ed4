from __future__ import annotations

import logging
from typing import List, Optional

from .errors import RemoteStoreError
from .record_cache import ChildRecord, LocalRecordCache
from .remote_store import CategoryStore

logger = logging.getLogger(__name__)


class FetchMerger:
    """Loads persisted rows for a parent and folds them into the cache."""

    def __init__(self, cache: LocalRecordCache, store: CategoryStore) -> None:
        self.cache = cache
        self.store = store

    async def load(self, parent_id: Optional[str]) -> Optional[List[ChildRecord]]:
        """Return the merged rows, or None when nothing could be loaded.

        Store failures leave the cache as it was.
        """

        if not parent_id:
            return None
        token = self.cache.merge_token()
        try:
            server_records = await self.store.list(parent_id)
        except RemoteStoreError as exc:
            logger.warning(
                "row fetch failed",
                extra={"category": self.cache.category, "parent_id": parent_id, "error": str(exc)},
            )
            return None
        return self.cache.merge_from_server(server_records, token=token)
