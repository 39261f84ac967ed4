"""In-memory row cache for one onboarding category."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from .remote_store import ServerRecord

logger = logging.getLogger(__name__)


def new_local_key() -> str:
    return uuid4().hex


@dataclass
class ChildRecord:
    """A row owned by the onboarding form.

    ``local_key`` never changes, even after the row is persisted and gains a
    ``server_id``. A row is pending exactly while it has no ``server_id``.
    """

    local_key: str
    server_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    confirmed_seq: int = field(default=0, repr=False, compare=False)

    @property
    def pending(self) -> bool:
        return self.server_id is None


class LocalRecordCache:
    def __init__(self, category: str) -> None:
        self.category = category
        self._records: List[ChildRecord] = []
        self._confirm_seq = 0

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> List[ChildRecord]:
        return list(self._records)

    def pending(self) -> List[ChildRecord]:
        return [record for record in self._records if record.pending]

    def confirmed(self) -> List[ChildRecord]:
        return [record for record in self._records if not record.pending]

    def get(self, local_key: str) -> Optional[ChildRecord]:
        for record in self._records:
            if record.local_key == local_key:
                return record
        return None

    def merge_token(self) -> int:
        """Mark the start of a fetch; pass the result to ``merge_from_server``."""

        return self._confirm_seq

    def append(self, fields: Mapping[str, Any]) -> ChildRecord:
        record = ChildRecord(local_key=new_local_key(), fields=dict(fields))
        self._records.append(record)
        return record

    def replace(self, local_key: str, patch: Mapping[str, Any]) -> Optional[ChildRecord]:
        """Mark a row as persisted, taking ``server_id`` and fields from ``patch``."""

        record = self.get(local_key)
        if record is None:
            logger.info(
                "replace skipped, row no longer cached",
                extra={"category": self.category, "local_key": local_key},
            )
            return None
        server_id = patch.get("server_id")
        if server_id is None:
            raise ValueError("replace requires a server_id")
        # a merge may already have pulled this row in under its own key
        self._records = [
            other
            for other in self._records
            if other is record or other.server_id != server_id
        ]
        self._confirm_seq += 1
        record.server_id = str(server_id)
        record.confirmed_seq = self._confirm_seq
        if patch.get("fields") is not None:
            record.fields = dict(patch["fields"])
        return record

    def update_fields(self, local_key: str, fields: Mapping[str, Any]) -> Optional[ChildRecord]:
        record = self.get(local_key)
        if record is None:
            return None
        record.fields = dict(fields)
        return record

    def remove(self, local_key: str) -> Optional[ChildRecord]:
        for idx, record in enumerate(self._records):
            if record.local_key == local_key:
                del self._records[idx]
                return record
        return None

    def merge_from_server(
        self,
        server_records: Iterable[ServerRecord],
        *,
        token: Optional[int] = None,
    ) -> List[ChildRecord]:
        """Combine a server snapshot with rows that have not been persisted yet.

        Confirmed rows are replaced wholesale by the snapshot; pending rows are
        kept untouched and listed first. Rows already known by server id keep
        their local key.

        With a ``token`` from ``merge_token``, rows confirmed after the token
        was taken survive even when the snapshot predates them.
        """

        pending = self.pending()
        known_keys = {record.server_id: record.local_key for record in self.confirmed()}
        confirmed: List[ChildRecord] = []
        seen: set[str] = set()
        for server_record in server_records:
            server_id = str(server_record.id)
            if server_id in seen:
                continue
            seen.add(server_id)
            confirmed.append(
                ChildRecord(
                    local_key=known_keys.get(server_id) or new_local_key(),
                    server_id=server_id,
                    fields=dict(server_record.fields),
                )
            )
        late: List[ChildRecord] = []
        if token is not None:
            late = [
                record
                for record in self.confirmed()
                if record.confirmed_seq > token and record.server_id not in seen
            ]
        self._records = pending + confirmed + late
        logger.debug(
            "merged server snapshot",
            extra={
                "category": self.category,
                "pending": len(pending),
                "confirmed": len(confirmed),
                "late": len(late),
            },
        )
        return self.records()
