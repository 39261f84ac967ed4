from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol

from .errors import ValidationError
from .schemas import CustomerFields, OnboardingStatus, OnboardingType

logger = logging.getLogger(__name__)

ParentListener = Callable[[str], Awaitable[None]]


class ParentState(str, Enum):
    UNCREATED = "uncreated"
    CREATED = "created"


class ParentRef:
    """Id of the parent onboarding. Set once, never cleared."""

    def __init__(self) -> None:
        self._id: Optional[str] = None

    @property
    def id(self) -> Optional[str]:
        return self._id

    def set(self, value: str) -> None:
        if self._id is not None:
            raise RuntimeError(f"Parent id already set to {self._id}")
        if not value:
            raise ValueError("Parent id cannot be empty")
        self._id = value


class ParentStore(Protocol):
    async def create(
        self,
        customer_id: str,
        onboarding_type: OnboardingType,
        status: OnboardingStatus,
        notes: Optional[str],
    ) -> dict:
        ...

    async def update(self, onboarding_id: str, patch: dict) -> dict:
        ...


class CustomerCreator(Protocol):
    async def create(self, fields: CustomerFields) -> dict:
        ...


@dataclass
class PersistOutcome:
    parent_id: str
    created: bool


class ParentLifecycleController:
    def __init__(
        self,
        store: ParentStore,
        customers: CustomerCreator,
        *,
        customer_id: Optional[str] = None,
        customer_fields: Optional[CustomerFields] = None,
    ) -> None:
        self.store = store
        self.customers = customers
        self.customer_id = customer_id
        self.customer_fields = customer_fields
        self.parent_ref = ParentRef()
        self.status: Optional[OnboardingStatus] = None
        self._listeners: List[ParentListener] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ParentState:
        return ParentState.CREATED if self.parent_ref.id else ParentState.UNCREATED

    @property
    def is_created(self) -> bool:
        return self.state is ParentState.CREATED

    def subscribe(self, listener: ParentListener) -> None:
        self._listeners.append(listener)

    async def _ensure_customer(self) -> str:
        if self.customer_id:
            return self.customer_id
        if self.customer_fields is None:
            raise ValidationError("customer", "company_name is required")
        created = await self.customers.create(self.customer_fields)
        self.customer_id = created["id"]
        return self.customer_id

    async def persist(
        self,
        status: OnboardingStatus,
        onboarding_type: OnboardingType,
        notes: Optional[str] = None,
    ) -> PersistOutcome:
        """Save the parent onboarding, creating it on first use.

        Store errors propagate; the controller stays uncreated in that case.
        """

        async with self._lock:
            if self.parent_ref.id:
                parent_id = self.parent_ref.id
                await self.store.update(
                    parent_id,
                    {
                        "status": status.value,
                        "onboarding_type": onboarding_type.value,
                        "notes": notes or None,
                    },
                )
                self.status = status
                return PersistOutcome(parent_id=parent_id, created=False)

            customer_id = await self._ensure_customer()
            created = await self.store.create(customer_id, onboarding_type, status, notes)
            self.parent_ref.set(created["id"])
            self.status = status
            logger.info(
                "onboarding created",
                extra={"parent_id": created["id"], "customer_id": customer_id, "status": status.value},
            )

        await self._notify(created["id"])
        return PersistOutcome(parent_id=created["id"], created=True)

    async def _notify(self, parent_id: str) -> None:
        results = await asyncio.gather(
            *(listener(parent_id) for listener in self._listeners),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "parent listener failed",
                    extra={"parent_id": parent_id},
                    exc_info=result,
                )
