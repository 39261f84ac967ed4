"""One customer onboarding form: the parent record plus its row categories."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional
from uuid import uuid4

from .categories import CATEGORIES, CategorySchema
from .child_editor import CategoryEditor
from .parent_lifecycle import CustomerCreator, ParentLifecycleController, ParentStore, PersistOutcome
from .remote_store import CategoryStore
from .schemas import (
    CategoryRowsOut,
    CustomerFields,
    OnboardingSessionOut,
    OnboardingStatus,
    OnboardingType,
)

logger = logging.getLogger(__name__)

CategoryStoreFactory = Callable[[CategorySchema], CategoryStore]


class OnboardingSession:
    def __init__(
        self,
        *,
        parent_store: ParentStore,
        customer_store: CustomerCreator,
        category_store: CategoryStoreFactory,
        onboarding_type: OnboardingType = OnboardingType.DILLYS,
        notes: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_fields: Optional[CustomerFields] = None,
        categories: Optional[Iterable[CategorySchema]] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid4().hex
        self.onboarding_type = onboarding_type
        self.notes = notes
        self.parent = ParentLifecycleController(
            parent_store,
            customer_store,
            customer_id=customer_id,
            customer_fields=customer_fields,
        )
        self.editors: Dict[str, CategoryEditor] = {}
        for schema in categories or CATEGORIES.values():
            editor = CategoryEditor(
                schema,
                category_store(schema),
                self.parent.parent_ref,
                onboarding_type=lambda: self.onboarding_type,
            )
            self.editors[schema.name] = editor
            self.parent.subscribe(editor.on_parent_created)

    @property
    def onboarding_id(self) -> Optional[str]:
        return self.parent.parent_ref.id

    def stores(self) -> Iterator[Any]:
        """Every remote store this session talks to."""

        yield self.parent.store
        yield self.parent.customers
        for editor in self.editors.values():
            yield editor.store

    def editor(self, category: str) -> CategoryEditor:
        try:
            return self.editors[category]
        except KeyError as exc:
            raise KeyError(f"Unknown category: {category}") from exc

    def update_details(
        self,
        *,
        onboarding_type: Optional[OnboardingType] = None,
        notes: Optional[str] = None,
        customer_fields: Optional[CustomerFields] = None,
    ) -> None:
        if onboarding_type is not None:
            self.onboarding_type = onboarding_type
        if notes is not None:
            self.notes = notes
        if customer_fields is not None and not self.parent.customer_id:
            self.parent.customer_fields = customer_fields

    async def save_draft(self) -> PersistOutcome:
        return await self.parent.persist(OnboardingStatus.DRAFT, self.onboarding_type, self.notes)

    async def submit(self) -> PersistOutcome:
        outcome = await self.parent.persist(OnboardingStatus.SUBMITTED, self.onboarding_type, self.notes)
        if not outcome.created:
            # rows that failed earlier get one more attempt
            await self.sync_all()
        still_pending = {name: editor.pending_count() for name, editor in self.editors.items()}
        if any(still_pending.values()):
            logger.warning(
                "onboarding submitted with unsynced rows",
                extra={"parent_id": outcome.parent_id, "pending": still_pending},
            )
        return outcome

    async def sync_all(self) -> None:
        results = await asyncio.gather(
            *(editor.sync() for editor in self.editors.values()),
            return_exceptions=True,
        )
        for name, result in zip(self.editors, results):
            if isinstance(result, Exception):
                logger.error("category sync failed", extra={"category": name}, exc_info=result)

    def view(self) -> OnboardingSessionOut:
        categories = []
        for name, editor in self.editors.items():
            categories.append(
                CategoryRowsOut(
                    category=name,
                    available=editor.available,
                    pending_count=editor.pending_count(),
                    records=[editor.describe(record) for record in editor.records()],
                )
            )
        return OnboardingSessionOut(
            session_id=self.session_id,
            customer_id=self.parent.customer_id,
            onboarding_id=self.onboarding_id,
            onboarding_type=self.onboarding_type,
            status=self.parent.status,
            notes=self.notes,
            categories=categories,
        )


class SessionRegistry:
    """Open form sessions, kept in memory until submitted or left idle."""

    def __init__(
        self,
        *,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: Dict[str, OnboardingSession] = {}
        self._last_seen: Dict[str, float] = {}

    def prune(self) -> List[str]:
        """Drop sessions idle for longer than ``idle_seconds``."""

        if self.idle_seconds is None:
            return []
        cutoff = self._clock() - self.idle_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            session = self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
            logger.info(
                "onboarding session expired",
                extra={
                    "session_id": session_id,
                    "onboarding_id": session.onboarding_id if session else None,
                },
            )
        return expired

    def add(self, session: OnboardingSession) -> OnboardingSession:
        self.prune()
        self._sessions[session.session_id] = session
        self._last_seen[session.session_id] = self._clock()
        return session

    def get(self, session_id: str) -> Optional[OnboardingSession]:
        self.prune()
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()
        self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._sessions)
